from __future__ import annotations

import logging

from ..utils.text import normalize_text
from .llm import ChatClient


logger = logging.getLogger(__name__)


def build_prompt(question: str, answer: str, variants: list[str] | tuple[str, ...], submitted: str) -> str:
    acceptable = f"Acceptable Answers: {', '.join(variants)}\n" if variants else ""
    return (
        "Check if this answer is correct for the trivia question.\n\n"
        f"Question: {question}\n"
        f"Correct Answer: {answer}\n"
        f"{acceptable}"
        f"Player's Answer: {submitted}\n\n"
        'Reply with ONLY "correct" if the player\'s answer is correct (it may differ from the '
        "correct or acceptable answers in case, punctuation or minor spelling), or "
        '"incorrect" if wrong.'
    )


def parse_verdict(reply: str) -> bool:
    return reply.strip().strip(".!\"'`").strip().lower() == "correct"


class LLMAnswerJudge:
    def __init__(self, client: ChatClient) -> None:
        self.client = client

    def judge(self, question: str, answer: str, variants, submitted: str) -> bool:
        if not answer or not submitted:
            return False
        reply = self.client.complete(build_prompt(question, answer, list(variants or []), submitted), max_tokens=5, temperature=0)
        return parse_verdict(reply)


class TextMatchJudge:
    """Local judge used when no model endpoint is configured."""

    def judge(self, question: str, answer: str, variants, submitted: str) -> bool:
        given = normalize_text(submitted)
        if not given:
            return False
        for candidate in [answer, *(variants or [])]:
            if normalize_text(candidate) == given:
                return True
        return False


def build_answer_judge(config) -> LLMAnswerJudge | TextMatchJudge:
    if not config.get("LLM_API_URL"):
        return TextMatchJudge()
    client = ChatClient(
        config["LLM_API_URL"],
        model=config.get("LLM_MODEL", ""),
        api_key=config.get("LLM_API_KEY", ""),
        timeout=float(config.get("LLM_TIMEOUT_SEC", 10)),
    )
    return LLMAnswerJudge(client)
