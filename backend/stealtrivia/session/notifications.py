from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from ..game.errors import GameError


AudienceKind = Literal["lobby", "players"]


@dataclass(frozen=True)
class Audience:
    kind: AudienceKind
    lobby_code: str | None = None
    player_ids: tuple[str, ...] = ()

    @classmethod
    def lobby(cls, code: str) -> "Audience":
        return cls(kind="lobby", lobby_code=code)

    @classmethod
    def player(cls, player_id: str) -> "Audience":
        return cls(kind="players", player_ids=(player_id,))

    @classmethod
    def players(cls, player_ids) -> "Audience":
        return cls(kind="players", player_ids=tuple(player_ids))


@dataclass(frozen=True)
class Notification:
    audience: Audience
    event: str
    payload: dict


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def notify(audience: Audience, event: str, **payload: Any) -> Notification:
    payload.setdefault("timestamp", timestamp())
    return Notification(audience=audience, event=event, payload=payload)


@dataclass
class CommandResult:
    success: bool
    lobby: dict | None = None
    error: GameError | None = None
    data: dict = field(default_factory=dict)
    notifications: list[Notification] = field(default_factory=list)

    @classmethod
    def ok(cls, lobby: dict | None = None, notifications: list[Notification] | None = None, **data: Any) -> "CommandResult":
        return cls(success=True, lobby=lobby, data=data, notifications=list(notifications or []))

    @classmethod
    def fail(cls, error: GameError) -> "CommandResult":
        return cls(success=False, error=error)

    @property
    def status(self) -> int:
        if self.success:
            return 200
        assert self.error is not None
        return self.error.status

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error else None

    def to_dict(self) -> dict:
        if not self.success:
            assert self.error is not None
            return self.error.to_dict()
        body: dict = {"success": True}
        if self.lobby is not None:
            body["lobby"] = self.lobby
        body.update(self.data)
        return body

    def events(self, name: str) -> list[Notification]:
        return [n for n in self.notifications if n.event == name]
