from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..auth.tokens import bearer_token
from ..session.commands import SessionService
from ..session.notifications import CommandResult

bp = Blueprint("lobbies", __name__)


def _session() -> SessionService:
    return current_app.extensions["stealtrivia.session"]


def _token() -> str | None:
    return bearer_token(request.headers.get("Authorization"))


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(result: CommandResult, status: int = 200):
    return jsonify(result.to_dict()), (status if result.success else result.status)


@bp.post("/lobby/create")
def create_lobby():
    data = _body()
    return _respond(_session().create_lobby(data.get("playerName")), 201)


@bp.post("/lobby/join")
def join_lobby():
    data = _body()
    return _respond(_session().join_lobby(data.get("playerName"), data.get("gameCode")), 201)


@bp.get("/lobby/<code>")
def get_lobby(code: str):
    return _respond(_session().get_lobby(_token(), code))


@bp.post("/lobby/<code>/leave")
def leave_lobby(code: str):
    return _respond(_session().leave_lobby(_token(), code))


@bp.post("/lobby/<code>/team")
def team_select(code: str):
    data = _body()
    return _respond(_session().team_select(_token(), code, data.get("team"), data.get("isCaptain", False)))


@bp.patch("/lobby/<code>/settings")
def update_settings(code: str):
    return _respond(_session().update_settings(_token(), code, _body()))


@bp.post("/lobby/<code>/kick")
def kick_player(code: str):
    return _respond(_session().kick_player(_token(), code, _body().get("playerId")))


@bp.post("/lobby/<code>/start")
def start_game(code: str):
    return _respond(_session().start_game(_token(), code))


@bp.post("/lobby/<code>/advance")
def advance_round(code: str):
    return _respond(_session().advance_round(_token(), code))


@bp.post("/lobby/<code>/answer")
def submit_answer(code: str):
    data = _body()
    return _respond(
        _session().submit_answer(
            _token(),
            code,
            data.get("isSteal", False),
            data.get("answer"),
            data.get("team"),
            data.get("roundNumber"),
        )
    )


@bp.post("/lobby/<code>/end")
def end_lobby(code: str):
    return _respond(_session().end_lobby(_token(), code))


@bp.post("/lobby/<code>/return")
def return_to_lobby(code: str):
    return _respond(_session().return_to_lobby(_token(), code))
