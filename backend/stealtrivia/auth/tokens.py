"""Capability tokens.

A token names one player in one lobby and says whether that player is the
host. It is signed with the app secret and expires after ``max_age`` seconds.
Verification fails closed: anything unexpected is an ``InvalidToken``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..game.errors import InvalidToken, LobbyMismatch, TokenExpired


TOKEN_SALT = "stealtrivia.capability"


@dataclass(frozen=True)
class Capability:
    player_id: str
    lobby_code: str
    is_host: bool
    issued_at: int


class TokenService:
    def __init__(self, secret_key: str, max_age: int = 3600) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)
        self.max_age = max_age

    def issue(self, player_id: str, lobby_code: str, is_host: bool) -> str:
        return self._serializer.dumps(
            {"pid": player_id, "lobby": lobby_code, "host": bool(is_host), "iat": int(time.time())}
        )

    def verify(self, token: str | None, lobby_code: str | None = None) -> Capability:
        if not token or not isinstance(token, str):
            raise InvalidToken("Authentication token required")
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            raise TokenExpired() from None
        except BadSignature:
            raise InvalidToken() from None

        if not isinstance(data, dict):
            raise InvalidToken()
        pid, code = data.get("pid"), data.get("lobby")
        if not isinstance(pid, str) or not isinstance(code, str) or not pid or not code:
            raise InvalidToken()

        cap = Capability(
            player_id=pid,
            lobby_code=code,
            is_host=bool(data.get("host")),
            issued_at=int(data.get("iat") or 0),
        )
        if lobby_code is not None and cap.lobby_code != lobby_code:
            raise LobbyMismatch()
        return cap


def bearer_token(header: str | None) -> str | None:
    if not header:
        return None
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
