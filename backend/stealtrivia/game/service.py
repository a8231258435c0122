from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from .errors import (
    AlreadyStarted,
    CannotKickHost,
    GameAlreadyStarted,
    InvalidName,
    InvalidSettings,
    LobbyFull,
    MissingCaptain,
    NotHost,
    NotInGame,
    TargetNotFound,
)
from .models import TEAMS, Lobby, Player, Question, Round, Settings
from .registry import LobbyRegistry
from ..utils.text import validate_name


logger = logging.getLogger(__name__)

ROUNDS_MIN, ROUNDS_MAX = 1, 20
ROUND_LIMIT_MIN, ROUND_LIMIT_MAX = 15, 120
TAGS_MAX, TAG_MAX_LEN = 10, 40
WIRE_KEYS = {"round_limit": "roundLimit"}


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_player_id() -> str:
    return f"player_{uuid.uuid4().hex[:16]}"


def new_player(name: str, is_host: bool = False) -> Player:
    if not validate_name(name):
        raise InvalidName()
    return Player(id=generate_player_id(), name=name.strip(), is_host=is_host, joined_at_ms=now_ms())


def normalize_code(code: Any) -> str:
    return str(code or "").strip().upper()


def create_lobby(
    registry: LobbyRegistry,
    host_name: str,
    settings: Settings | None = None,
    max_players: int = 16,
    max_team_size: int = 8,
) -> Lobby:
    host = new_player(host_name, is_host=True)

    def build(code: str) -> Lobby:
        lobby = Lobby(
            code=code,
            host=host,
            settings=settings or Settings(),
            max_players=max_players,
            max_team_size=max_team_size,
        )
        lobby.assign_team(host, "blue")
        return lobby

    lobby = registry.create(build)
    logger.info("lobby %s created by %s", lobby.code, host.id)
    return lobby


def add_player_to_smaller_team(lobby: Lobby, player: Player) -> None:
    if lobby.team_size("blue") <= lobby.team_size("red"):
        lobby.assign_team(player, "blue")
    else:
        lobby.assign_team(player, "red")


def join_lobby(lobby: Lobby, name: str) -> Player:
    if not validate_name(name):
        raise InvalidName()
    if lobby.total_players() >= lobby.max_players:
        raise LobbyFull()
    if lobby.phase != "pregame":
        raise GameAlreadyStarted()

    player = new_player(name)
    add_player_to_smaller_team(lobby, player)
    return player


def require_host(lobby: Lobby, caller: Player, message: str | None = None) -> None:
    if caller is not lobby.host:
        raise NotHost(message)


def _int_in_range(value: Any, lo: int, hi: int, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSettings(f"{label} must be a whole number")
    if value < lo or value > hi:
        raise InvalidSettings(f"{label} must be between {lo} and {hi}")
    return value


def _clean_tags(value: Any) -> list[str]:
    if not isinstance(value, list) or not value:
        raise InvalidSettings("Tags must be a non-empty list")
    tags: list[str] = []
    for t in value:
        if not isinstance(t, str) or not t.strip() or len(t.strip()) > TAG_MAX_LEN:
            raise InvalidSettings(f"Tags must be 1-{TAG_MAX_LEN} characters")
        if t.strip() not in tags:
            tags.append(t.strip())
    if len(tags) > TAGS_MAX:
        raise InvalidSettings(f"At most {TAGS_MAX} tags")
    return tags


def update_settings(lobby: Lobby, caller: Player, patch: Any) -> list[str]:
    """Validate the whole patch, then merge it. Returns the changed keys."""
    require_host(lobby, caller, "Only host can update settings")
    if not isinstance(patch, dict):
        raise InvalidSettings()

    updates: dict[str, Any] = {}
    if patch.get("rounds") is not None:
        updates["rounds"] = _int_in_range(patch["rounds"], ROUNDS_MIN, ROUNDS_MAX, "Rounds")
    if patch.get("roundLimit") is not None:
        updates["round_limit"] = _int_in_range(
            patch["roundLimit"], ROUND_LIMIT_MIN, ROUND_LIMIT_MAX, "Round limit (seconds)"
        )
    if patch.get("tags") is not None:
        updates["tags"] = _clean_tags(patch["tags"])

    for key, value in updates.items():
        setattr(lobby.settings, key, value)
    return [WIRE_KEYS.get(k, k) for k in updates]


def team_select(lobby: Lobby, player: Player, team: Any, as_captain: Any = False) -> None:
    if lobby.phase != "pregame":
        raise GameAlreadyStarted()
    lobby.assign_team(player, team, bool(as_captain))


def kick_player(lobby: Lobby, caller: Player, target_id: Any) -> Player:
    require_host(lobby, caller, "Only host can kick players")
    target = lobby.get_player(str(target_id or ""))
    if target is None:
        raise TargetNotFound()
    if target.is_host:
        raise CannotKickHost()
    lobby.remove_player(target)
    return target


def leave_lobby(lobby: Lobby, player: Player) -> bool:
    """Remove ``player``. Returns True when the host left (lobby must be torn down)."""
    lobby.remove_player(player)
    return player.is_host


def start_game(lobby: Lobby, caller: Player) -> int:
    require_host(lobby, caller, "Only host can start the game")
    if lobby.captains["blue"] is None or lobby.captains["red"] is None:
        raise MissingCaptain()
    if lobby.phase != "pregame":
        raise AlreadyStarted()

    lobby.reset_game()
    lobby.phase = "playing"
    lobby.game_id += 1
    lobby.started_at_ms = now_ms()
    logger.info("lobby %s started game %d", lobby.code, lobby.game_id)
    return lobby.game_id


def placeholder_questions(count: int) -> list[Question]:
    return [
        Question(question=f"Question {i + 1} (Failed to generate)", answer="Default answer", tag="General")
        for i in range(count)
    ]


def install_rounds(lobby: Lobby, game_id: int, questions: list[Question] | None) -> bool:
    """Build the question bank for ``game_id``.

    Returns False if the lobby has since moved on to another game or back to
    pregame, in which case nothing changes.
    """
    if lobby.phase != "playing" or lobby.game_id != game_id or lobby.rounds_ready:
        return False

    count = lobby.settings.rounds
    usable = [q for q in (questions or []) if q and q.question][:count]
    if not usable:
        logger.warning("lobby %s: no usable questions, using %d placeholders", lobby.code, count)
        usable = placeholder_questions(count)

    lobby.rounds = [Round.from_question(i + 1, q) for i, q in enumerate(usable)]
    lobby.rounds_ready = True
    logger.info("lobby %s prepared %d rounds", lobby.code, len(lobby.rounds))
    return True


def return_to_lobby(lobby: Lobby, caller: Player) -> None:
    require_host(lobby, caller)
    if lobby.phase == "pregame":
        raise NotInGame()
    lobby.phase = "pregame"
    lobby.reset_game()
    lobby.started_at_ms = None


def team_member_ids(lobby: Lobby, team: str) -> list[str]:
    if team not in TEAMS:
        return []
    return [p.id for p in lobby.teams[team]]
