"""Command entry points.

Each public method verifies the caller's capability token, mutates the lobby
while holding its lock and returns a ``CommandResult``. Notifications are
handed to the dispatcher once the lock is released, and background work
(question generation, judging) is started after that.

Internal events (questions ready, judging done, round deadline, presence
expiry) come back in through the same lock, never by touching a lobby from a
foreign task.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable

from ..auth.tokens import Capability, TokenService
from ..game import rounds, service
from ..game.errors import GameError, InvalidMessage, InvalidName, LobbyNotFound, NotOnTeam, PlayerNotFound
from ..game.models import Lobby, Player, Settings
from ..game.presence import PresenceTracker
from ..game.registry import LobbyRegistry
from ..game.rounds import JudgeRequest
from ..game.snapshots import game_summary, lobby_snapshot, player_brief, round_results, settings_dto
from ..realtime import events
from ..utils.text import clean_text, validate_name
from .notifications import Audience, CommandResult, Notification, notify


logger = logging.getLogger(__name__)

CHAT_MAX_LEN = 300
Dispatcher = Callable[[list[Notification]], None]


class SessionService:
    def __init__(
        self,
        registry: LobbyRegistry,
        tokens: TokenService,
        tasks: Any,
        dispatcher: Dispatcher | None = None,
        question_generator: Any = None,
        judge: Any = None,
        default_settings: Settings | None = None,
        grace_sec: float = 20,
        max_players: int = 16,
        max_team_size: int = 8,
    ) -> None:
        self.registry = registry
        self.tokens = tokens
        self.tasks = tasks
        self.question_generator = question_generator
        self.judge = judge
        self.default_settings = default_settings or Settings()
        self.max_players = max_players
        self.max_team_size = max_team_size
        self.presence = PresenceTracker(tasks, grace_sec, self._presence_expired)
        self._dispatcher = dispatcher

    # -- plumbing -------------------------------------------------------

    def _emit(self, notes: list[Notification]) -> None:
        if notes and self._dispatcher is not None:
            self._dispatcher(notes)

    def _finish(self, result: CommandResult) -> CommandResult:
        self._emit(result.notifications)
        return result

    @staticmethod
    def _rejected(op: str, err: GameError) -> CommandResult:
        logger.debug("%s rejected: %s", op, err.code)
        return CommandResult.fail(err)

    def _verify(self, token: str | None, code: str | None = None) -> Capability:
        return self.tokens.verify(token, service.normalize_code(code) if code else None)

    @staticmethod
    def _caller(lobby: Lobby, cap: Capability) -> Player:
        player = lobby.get_player(cap.player_id)
        if player is None:
            raise PlayerNotFound()
        return player

    def _new_settings(self) -> Settings:
        return dataclasses.replace(self.default_settings, tags=list(self.default_settings.tags))

    @staticmethod
    def _cancel_round_timer(lobby: Lobby) -> None:
        if lobby.round_timer is not None:
            lobby.round_timer.cancel()
            lobby.round_timer = None

    def _teardown(self, lobby: Lobby, reason: str) -> list[Notification]:
        self._cancel_round_timer(lobby)
        for p in lobby.all_players():
            self.presence.forget(p.id)
        self.registry.remove(lobby.code)
        logger.info("lobby %s ended: %s", lobby.code, reason)
        return [notify(Audience.lobby(lobby.code), events.LOBBY_ENDED, lobbyCode=lobby.code, reason=reason)]

    def _depart(self, lobby: Lobby, player: Player) -> list[Notification]:
        info = player_brief(player)
        host_left = service.leave_lobby(lobby, player)
        self.registry.unindex_player(player.id)
        self.presence.forget(player.id)
        if host_left:
            return self._teardown(lobby, "Host left the lobby")
        return [
            notify(Audience.lobby(lobby.code), events.PLAYER_LEFT, player=info, lobby=lobby_snapshot(lobby))
        ]

    # -- lobby commands -------------------------------------------------

    def create_lobby(self, player_name: Any) -> CommandResult:
        try:
            lobby = service.create_lobby(
                self.registry,
                player_name if isinstance(player_name, str) else "",
                settings=self._new_settings(),
                max_players=self.max_players,
                max_team_size=self.max_team_size,
            )
        except GameError as e:
            return self._rejected("create_lobby", e)

        host = lobby.host
        with self.registry.locked(lobby.code):
            snapshot = lobby_snapshot(lobby)
        return self._finish(
            CommandResult.ok(
                snapshot,
                token=self.tokens.issue(host.id, lobby.code, True),
                player={"id": host.id, "name": host.name, "isHost": True},
            )
        )

    def join_lobby(self, player_name: Any, code: Any) -> CommandResult:
        lobby_code = service.normalize_code(code)
        name = player_name if isinstance(player_name, str) else ""
        try:
            if not validate_name(name):
                raise InvalidName()
            if not lobby_code:
                raise LobbyNotFound()
            with self.registry.locked(lobby_code) as lobby:
                player = service.join_lobby(lobby, name)
                self.registry.index_player(player.id, lobby_code)
                snapshot = lobby_snapshot(lobby)
                notes = [
                    notify(Audience.lobby(lobby_code), events.PLAYER_JOINED, player=player_brief(player), lobby=snapshot)
                ]
        except GameError as e:
            return self._rejected("join_lobby", e)

        logger.info("player %s joined lobby %s", player.id, lobby_code)
        return self._finish(
            CommandResult.ok(
                snapshot,
                notes,
                token=self.tokens.issue(player.id, lobby_code, False),
                player={"id": player.id, "name": player.name, "isHost": False},
            )
        )

    def get_lobby(self, token: str | None, code: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                self._caller(lobby, cap)
                return CommandResult.ok(lobby_snapshot(lobby))
        except GameError as e:
            return self._rejected("get_lobby", e)

    def leave_lobby(self, token: str | None, code: Any = None) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                notes = self._depart(lobby, player)
                ended = cap.lobby_code not in self.registry
                result = CommandResult.ok(
                    None if ended else lobby_snapshot(lobby), notes, lobbyEnded=ended
                )
        except GameError as e:
            return self._rejected("leave_lobby", e)
        return self._finish(result)

    def team_select(self, token: str | None, code: Any, team: Any, as_captain: Any = False) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                service.team_select(lobby, player, team, as_captain)
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot,
                    [
                        notify(
                            Audience.lobby(lobby.code),
                            events.PLAYER_TEAM_CHANGED,
                            player=player_brief(player),
                            lobby=snapshot,
                        )
                    ],
                )
        except GameError as e:
            return self._rejected("team_select", e)
        return self._finish(result)

    def update_settings(self, token: str | None, code: Any, patch: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                changed = service.update_settings(lobby, player, patch)
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot,
                    [
                        notify(
                            Audience.lobby(lobby.code),
                            events.SETTINGS_UPDATED,
                            settings=settings_dto(lobby),
                            changed=changed,
                            lobby=snapshot,
                        )
                    ],
                )
        except GameError as e:
            return self._rejected("update_settings", e)
        return self._finish(result)

    def kick_player(self, token: str | None, code: Any, target_id: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                before = lobby.get_player(str(target_id or ""))
                info = player_brief(before) if before else None
                target = service.kick_player(lobby, player, target_id)
                self.registry.unindex_player(target.id)
                self.presence.forget(target.id)
                snapshot = lobby_snapshot(lobby)
                notes = [
                    # The kicked player hears first, while still subscribed.
                    notify(
                        Audience.player(target.id),
                        events.YOU_WERE_KICKED,
                        reason="You were kicked from the lobby",
                        kickedBy=player.id,
                        lobbyCode=lobby.code,
                    ),
                    notify(
                        Audience.lobby(lobby.code),
                        events.PLAYER_KICKED,
                        player=info,
                        kickedBy=player.id,
                        lobby=snapshot,
                    ),
                ]
                result = CommandResult.ok(snapshot, notes)
        except GameError as e:
            return self._rejected("kick_player", e)
        logger.info("player %s kicked from lobby %s", target.id, cap.lobby_code)
        return self._finish(result)

    def end_lobby(self, token: str | None, code: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                service.require_host(lobby, player, "Only host can end the lobby")
                notes = self._teardown(lobby, "Host ended the lobby")
                result = CommandResult.ok(None, notes, lobbyEnded=True)
        except GameError as e:
            return self._rejected("end_lobby", e)
        return self._finish(result)

    def chat(self, token: str | None, text: Any, scope: Any = "room") -> CommandResult:
        try:
            cap = self._verify(token)
            message = clean_text(text, CHAT_MAX_LEN)
            if message is None:
                raise InvalidMessage()
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                if scope == "team":
                    if player.team is None:
                        raise NotOnTeam()
                    # Membership is read now, under the lock: whoever is on the team at send time.
                    audience = Audience.players(service.team_member_ids(lobby, player.team))
                else:
                    scope = "room"
                    audience = Audience.lobby(lobby.code)
                note = notify(
                    audience,
                    events.CHAT_MESSAGE,
                    message=message,
                    playerId=player.id,
                    playerName=player.name,
                    team=player.team,
                    scope=scope,
                )
                result = CommandResult.ok(None, [note])
        except GameError as e:
            return self._rejected("chat", e)
        return self._finish(result)

    # -- game commands --------------------------------------------------

    def start_game(self, token: str | None, code: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                game_id = service.start_game(lobby, player)
                count, tags = lobby.settings.rounds, list(lobby.settings.tags)
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot, [notify(Audience.lobby(lobby.code), events.GAME_STARTED, lobby=snapshot)]
                )
        except GameError as e:
            return self._rejected("start_game", e)

        self._finish(result)
        self.tasks.spawn(self._prepare_rounds, cap.lobby_code, game_id, count, tags)
        return result

    def _prepare_rounds(self, code: str, game_id: int, count: int, tags: list[str]) -> None:
        questions = None
        if self.question_generator is not None:
            try:
                questions = self.question_generator.generate(count, tags)
            except Exception as e:
                logger.warning("lobby %s: question generation failed: %s", code, e)
        else:
            logger.warning("lobby %s: no question generator configured", code)

        try:
            with self.registry.locked(code) as lobby:
                if not service.install_rounds(lobby, game_id, questions):
                    return
                snapshot = lobby_snapshot(lobby)
                notes = [
                    notify(Audience.lobby(code), events.LOBBY_UPDATED, updateType="rounds-ready", lobby=snapshot)
                ]
        except LobbyNotFound:
            return
        self._emit(notes)

    def advance_round(self, token: str | None, code: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                rnd = rounds.advance_round(lobby, player)
                self._cancel_round_timer(lobby)
                lobby.round_timer = self.tasks.call_later(
                    lobby.settings.round_limit, self._round_expired, lobby.code, lobby.game_id, rnd.number
                )
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot,
                    [
                        notify(
                            Audience.lobby(lobby.code),
                            events.ROUND_STARTED,
                            roundNumber=rnd.number,
                            totalRounds=len(lobby.rounds),
                            question=rnd.question,
                            tag=rnd.tag,
                            deadline=rnd.deadline_ms,
                            roundLimit=lobby.settings.round_limit,
                            lobby=snapshot,
                        )
                    ],
                )
        except GameError as e:
            return self._rejected("advance_round", e)
        return self._finish(result)

    def submit_answer(
        self,
        token: str | None,
        code: Any,
        is_steal: Any,
        answer: Any,
        team: Any,
        round_number: Any,
    ) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                closed = rounds.submit_answer(lobby, player, is_steal, answer, team, round_number)
                rnd = lobby.current_round
                assert rnd is not None
                requests: list[JudgeRequest] = []
                if closed:
                    self._cancel_round_timer(lobby)
                    requests = rounds.judge_requests(rnd)
                game_id = lobby.game_id
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot,
                    [
                        notify(
                            Audience.lobby(lobby.code),
                            events.ANSWER_SUBMITTED,
                            team=team,
                            roundNumber=rnd.number,
                            lobby=snapshot,
                        )
                    ],
                    roundNumber=rnd.number,
                    team=team,
                )
        except GameError as e:
            return self._rejected("submit_answer", e)

        self._finish(result)
        if closed:
            self.tasks.spawn(self._judge_round, cap.lobby_code, game_id, rnd.number, requests)
        return result

    def _round_expired(self, code: str, game_id: int, round_number: int) -> None:
        try:
            with self.registry.locked(code) as lobby:
                if lobby.game_id != game_id or not rounds.expire_round(lobby, round_number):
                    return
                lobby.round_timer = None
                rnd = lobby.current_round
                assert rnd is not None
                requests = rounds.judge_requests(rnd)
                notes = [
                    notify(
                        Audience.lobby(code),
                        events.LOBBY_UPDATED,
                        updateType="round-closed",
                        roundNumber=round_number,
                        lobby=lobby_snapshot(lobby),
                    )
                ]
        except LobbyNotFound:
            return
        logger.info("lobby %s round %d timed out", code, round_number)
        self._emit(notes)
        self._judge_round(code, game_id, round_number, requests)

    def _judge_one(self, req: JudgeRequest) -> bool:
        if self.judge is None:
            return False
        try:
            return bool(self.judge.judge(req.question, req.answer, list(req.acceptable_answers), req.submitted))
        except Exception as e:
            logger.warning("judging failed for round %d (%s), counting as incorrect: %s", req.round_number, req.team, e)
            return False

    def _judge_round(self, code: str, game_id: int, round_number: int, requests: list[JudgeRequest]) -> None:
        verdicts = {req.team: self._judge_one(req) for req in requests}
        try:
            with self.registry.locked(code) as lobby:
                if lobby.game_id != game_id:
                    return
                rnd = rounds.complete_round(lobby, round_number, verdicts)
                if rnd is None:
                    return
                snapshot = lobby_snapshot(lobby)
                notes = [
                    notify(Audience.lobby(code), events.ROUND_RESULTS, lobby=snapshot, **round_results(lobby, rnd))
                ]
                if lobby.phase == "ended":
                    notes.append(
                        notify(Audience.lobby(code), events.GAME_ENDED, lobby=snapshot, **game_summary(lobby))
                    )
                    logger.info("lobby %s game %d finished %s", code, game_id, lobby.scores)
        except LobbyNotFound:
            return
        self._emit(notes)

    def return_to_lobby(self, token: str | None, code: Any) -> CommandResult:
        try:
            cap = self._verify(token, code)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                service.return_to_lobby(lobby, player)
                self._cancel_round_timer(lobby)
                snapshot = lobby_snapshot(lobby)
                result = CommandResult.ok(
                    snapshot,
                    [
                        notify(
                            Audience.lobby(lobby.code),
                            events.LOBBY_UPDATED,
                            updateType="returned-to-lobby",
                            lobby=snapshot,
                        )
                    ],
                )
        except GameError as e:
            return self._rejected("return_to_lobby", e)
        return self._finish(result)

    # -- presence -------------------------------------------------------

    def connect(self, token: str | None) -> CommandResult:
        """Bind a live connection to the token's player."""
        try:
            cap = self._verify(token)
            with self.registry.locked(cap.lobby_code) as lobby:
                player = self._caller(lobby, cap)
                self.presence.connect(player.id)
                notes: list[Notification] = []
                if not player.connected:
                    player.connection = "connected"
                    notes.append(
                        notify(
                            Audience.lobby(lobby.code),
                            events.PLAYER_RECONNECTED,
                            playerId=player.id,
                            lobby=lobby_snapshot(lobby),
                        )
                    )
                result = CommandResult.ok(
                    lobby_snapshot(lobby), notes, playerId=player.id, lobbyCode=lobby.code
                )
        except GameError as e:
            return self._rejected("connect", e)
        return self._finish(result)

    def disconnect(self, player_id: str, code: str) -> None:
        try:
            with self.registry.locked(code) as lobby:
                if not self.presence.disconnect(player_id, code):
                    return
                player = lobby.get_player(player_id)
                # a reconnect may have landed while the grace timer was being armed
                if player is None or self.presence.is_connected(player_id):
                    return
                player.connection = "disconnected"
                notes = [
                    notify(
                        Audience.lobby(code),
                        events.PLAYER_DISCONNECTED,
                        playerId=player_id,
                        lobbyCode=code,
                        lobby=lobby_snapshot(lobby),
                    )
                ]
        except LobbyNotFound:
            return
        self._emit(notes)

    def _presence_expired(self, player_id: str, code: str) -> None:
        try:
            with self.registry.locked(code) as lobby:
                player = lobby.get_player(player_id)
                if player is None or player.connected:
                    return
                notes = self._depart(lobby, player)
        except LobbyNotFound:
            return
        self._emit(notes)
