from __future__ import annotations

from flask import request
from flask_socketio import SocketIO, emit

from . import events
from .dispatcher import SocketIODispatcher
from ..session.commands import SessionService
from ..session.notifications import CommandResult, timestamp


def register_socketio_handlers(socketio: SocketIO, session: SessionService, dispatcher: SocketIODispatcher) -> None:
    def _fail(result: CommandResult) -> dict:
        emit(events.ERROR, result.to_dict())
        return {"ok": False, "error": result.error_code}

    def _not_bound() -> dict:
        emit(events.ERROR, {"success": False, "error": "not_in_lobby", "message": "Join a lobby first"})
        return {"ok": False, "error": "not_in_lobby"}

    @socketio.on(events.LOBBY_JOIN)
    def lobby_join(data):
        payload = data if isinstance(data, dict) else {}
        token = str(payload.get("token") or "").strip()

        current = dispatcher.binding(request.sid)
        if current is not None:
            if current.token == token:
                result = session.get_lobby(token, current.lobby_code)
                if not result.success:
                    return _fail(result)
                return {"ok": True, "lobby": result.lobby}
            # Switching identity on the same socket: drop the old one first.
            dispatcher.unbind(request.sid)
            session.disconnect(current.player_id, current.lobby_code)

        result = session.connect(token)
        if not result.success:
            return _fail(result)

        dispatcher.bind(request.sid, result.data["playerId"], result.data["lobbyCode"], token)
        emit(
            events.LOBBY_UPDATED,
            {"updateType": "sync", "lobby": result.lobby, "timestamp": timestamp()},
            to=request.sid,
        )
        return {"ok": True, "lobby": result.lobby}

    @socketio.on(events.LOBBY_LEAVE)
    def lobby_leave(data):
        payload = data if isinstance(data, dict) else {}
        current = dispatcher.binding(request.sid)
        token = str(payload.get("token") or "").strip() or (current.token if current else "")

        result = session.leave_lobby(token)
        if not result.success:
            return _fail(result)
        dispatcher.unbind(request.sid)
        return {"ok": True}

    @socketio.on(events.CHAT_SEND)
    def chat_message(data):
        payload = data if isinstance(data, dict) else {}
        current = dispatcher.binding(request.sid)
        if current is None:
            return _not_bound()

        result = session.chat(current.token, payload.get("text"), payload.get("scope") or "room")
        if not result.success:
            return _fail(result)
        return {"ok": True}

    @socketio.on("disconnect")
    def on_disconnect(*_args):
        current = dispatcher.unbind(request.sid)
        if current is not None:
            session.disconnect(current.player_id, current.lobby_code)
