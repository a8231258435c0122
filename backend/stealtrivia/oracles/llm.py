"""Minimal client for an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging

import httpx


logger = logging.getLogger(__name__)


class OracleError(Exception):
    pass


def build_completions_url(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    if base_url.endswith("/chat/completions"):
        return base_url
    if base_url.endswith("/v1"):
        return f"{base_url}/chat/completions"
    return f"{base_url}/v1/chat/completions"


class ChatClient:
    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = build_completions_url(base_url)
        self.model = model
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._http = httpx.Client(headers=headers, timeout=timeout, transport=transport)

    def complete(self, prompt: str, max_tokens: int = 2000, temperature: float = 0.2) -> str:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            response = self._http.post(self.url, json=body)
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.HTTPError as e:
            raise OracleError(f"chat completion request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise OracleError(f"unexpected chat completion response: {e}") from e

        if not isinstance(content, str):
            raise OracleError("chat completion returned no text")
        return content

    def close(self) -> None:
        self._http.close()
