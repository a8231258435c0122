"""Wire representations of the game model.

Clients only ever see these plain dicts, never the dataclasses themselves.
"""

from __future__ import annotations

from .models import TEAMS, Lobby, Player, Round
from .scoring import game_winner


def player_dto(player: Player) -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "team": player.team,
        "isCaptain": player.is_captain,
        "isConnected": player.connected,
        "isHost": player.is_host,
    }


def player_brief(player: Player) -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "team": player.team,
        "isCaptain": player.is_captain,
        "isHost": player.is_host,
    }


def settings_dto(lobby: Lobby) -> dict:
    s = lobby.settings
    return {"rounds": s.rounds, "roundLimit": s.round_limit, "tags": list(s.tags)}


def round_public(rnd: Round) -> dict:
    """What everyone may see while a round is open. The answer stays hidden."""
    payload = {
        "roundNumber": rnd.number,
        "question": rnd.question,
        "tag": rnd.tag,
        "state": rnd.state,
        "deadline": rnd.deadline_ms,
        "submitted": {t: rnd.has_submitted(t) for t in TEAMS},
    }
    if rnd.state == "resolved":
        payload.update(round_outcome(rnd))
    return payload


def round_outcome(rnd: Round) -> dict:
    answers = {}
    for t in TEAMS:
        sub = rnd.submissions.get(t)
        answers[t] = {
            "submitted": sub is not None,
            "isSteal": bool(sub and sub.is_steal),
            "answer": sub.answer if sub else None,
            "correct": rnd.verdicts.get(t),
        }
    return {
        "roundNumber": rnd.number,
        "question": rnd.question,
        "tag": rnd.tag,
        "correctAnswer": rnd.answer,
        "acceptableAnswers": list(rnd.acceptable_answers),
        "answers": answers,
        "timedOut": rnd.timed_out,
        "winner": rnd.winner,
        "points": dict(rnd.points),
    }


def round_results(lobby: Lobby, rnd: Round) -> dict:
    payload = round_outcome(rnd)
    payload["scores"] = dict(lobby.scores)
    payload["isGameComplete"] = lobby.phase == "ended"
    return payload


def game_summary(lobby: Lobby) -> dict:
    return {
        "scores": dict(lobby.scores),
        "winner": game_winner(lobby.scores),
        "startedAt": lobby.started_at_ms,
        "endedAt": lobby.ended_at_ms,
        "rounds": [round_outcome(r) for r in lobby.rounds if r.state == "resolved"],
    }


def lobby_snapshot(lobby: Lobby) -> dict:
    current = lobby.current_round
    game = {
        "currentRoundNumber": lobby.current_round_number,
        "totalRounds": len(lobby.rounds),
        "roundsReady": lobby.rounds_ready,
        "scores": dict(lobby.scores),
        "currentRound": round_public(current) if current else None,
    }
    payload = {
        "code": lobby.code,
        "settings": settings_dto(lobby),
        "host": {"id": lobby.host.id, "name": lobby.host.name},
        "blueTeam": [player_dto(p) for p in lobby.teams["blue"]],
        "redTeam": [player_dto(p) for p in lobby.teams["red"]],
        "captains": {t: (lobby.captains[t].id if lobby.captains[t] else None) for t in TEAMS},
        "counts": {t: lobby.team_size(t) for t in TEAMS},
        "maxTeamSize": lobby.max_team_size,
        "maxPlayers": lobby.max_players,
        "gamePhase": lobby.phase,
        "gameState": game,
    }
    if lobby.phase == "ended":
        payload["summary"] = game_summary(lobby)
    return payload
