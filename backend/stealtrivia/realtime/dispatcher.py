from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock

from flask_socketio import SocketIO

from . import events
from ..session.notifications import Notification


logger = logging.getLogger(__name__)

NAMESPACE = "/"


def player_room(player_id: str) -> str:
    return f"player:{player_id}"


@dataclass(frozen=True)
class Binding:
    player_id: str
    lobby_code: str
    token: str


class SocketIODispatcher:
    """Delivers notifications over Socket.IO and remembers which socket is whose.

    A bound socket sits in two rooms: the lobby code (broadcasts) and
    ``player:<id>`` (direct pushes). Players that leave or get kicked are
    pulled out of the lobby room after the notification went out; a lobby
    that ends has its room closed.
    """

    def __init__(self, socketio: SocketIO) -> None:
        self.socketio = socketio
        self._lock = RLock()
        self._bindings: dict[str, Binding] = {}

    def bind(self, sid: str, player_id: str, lobby_code: str, token: str) -> None:
        with self._lock:
            self._bindings[sid] = Binding(player_id, lobby_code, token)
        server = self.socketio.server
        server.enter_room(sid, lobby_code, namespace=NAMESPACE)
        server.enter_room(sid, player_room(player_id), namespace=NAMESPACE)

    def binding(self, sid: str) -> Binding | None:
        with self._lock:
            return self._bindings.get(sid)

    def unbind(self, sid: str) -> Binding | None:
        with self._lock:
            b = self._bindings.pop(sid, None)
        if b is not None:
            self._leave_rooms(sid, b)
        return b

    def _leave_rooms(self, sid: str, b: Binding) -> None:
        server = self.socketio.server
        for room in (b.lobby_code, player_room(b.player_id)):
            server.leave_room(sid, room, namespace=NAMESPACE)
        logger.debug("sid %s unbound from player %s", sid, b.player_id)

    def evict_player(self, player_id: str) -> None:
        with self._lock:
            sids = [sid for sid, b in self._bindings.items() if b.player_id == player_id]
        for sid in sids:
            self.unbind(sid)

    def close_lobby(self, lobby_code: str) -> None:
        with self._lock:
            sids = [sid for sid, b in self._bindings.items() if b.lobby_code == lobby_code]
        for sid in sids:
            self.unbind(sid)
        self.socketio.close_room(lobby_code, namespace=NAMESPACE)

    def __call__(self, notes: list[Notification]) -> None:
        for note in notes:
            self.deliver(note)

    def deliver(self, note: Notification) -> None:
        aud = note.audience
        if aud.kind == "lobby":
            self.socketio.emit(note.event, note.payload, to=aud.lobby_code, namespace=NAMESPACE)
        else:
            for pid in aud.player_ids:
                self.socketio.emit(note.event, note.payload, to=player_room(pid), namespace=NAMESPACE)

        if note.event in (events.PLAYER_LEFT, events.PLAYER_KICKED):
            gone = (note.payload.get("player") or {}).get("id")
            if gone:
                self.evict_player(gone)
        elif note.event == events.LOBBY_ENDED and aud.lobby_code:
            self.close_lobby(aud.lobby_code)
