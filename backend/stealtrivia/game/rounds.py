"""Round lifecycle: not_started -> awaiting_submissions -> resolving -> resolved.

All functions here expect the caller to hold the lobby's lock. Judging itself
happens elsewhere; this module only says what needs judging and applies the
verdicts when they come back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import (
    AlreadySubmitted,
    GameNotPlaying,
    InvalidAnswer,
    NoRoundsRemaining,
    NotCaptain,
    QuestionsPending,
    RoundClosed,
    RoundInProgress,
    RoundMismatch,
    ValidationError,
)
from .models import TEAMS, Lobby, Player, Round, Submission, ensure_team
from .scoring import NO_ANSWER, Outcome, TeamPlay, resolve_outcome
from .service import now_ms, require_host
from ..utils.text import clean_text


ANSWER_MAX_LEN = 100


@dataclass(frozen=True)
class JudgeRequest:
    round_number: int
    team: str
    question: str
    answer: str
    acceptable_answers: tuple[str, ...]
    submitted: str


def advance_round(lobby: Lobby, caller: Player, now: int | None = None) -> Round:
    require_host(lobby, caller, "Only host can advance rounds")
    if lobby.phase != "playing":
        raise GameNotPlaying()
    if not lobby.rounds_ready:
        raise QuestionsPending()
    current = lobby.current_round
    if current is not None and current.state != "resolved":
        raise RoundInProgress()
    if lobby.current_round_number >= len(lobby.rounds):
        raise NoRoundsRemaining()

    lobby.current_round_number += 1
    rnd = lobby.current_round
    assert rnd is not None and rnd.number == lobby.current_round_number
    rnd.state = "awaiting_submissions"
    rnd.deadline_ms = (now if now is not None else now_ms()) + lobby.settings.round_limit * 1000
    return rnd


def _claimed_round(raw: Any) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            pass
    raise ValidationError("roundNumber must be a whole number")


def submit_answer(
    lobby: Lobby,
    caller: Player,
    is_steal: Any,
    answer: Any,
    team: Any,
    round_number: Any,
    now: int | None = None,
) -> bool:
    """Record a captain's submission.

    Returns True when this submission completed the round (both teams in), in
    which case the round has already moved to ``resolving``.
    """
    if lobby.phase != "playing":
        raise GameNotPlaying()
    team = ensure_team(team)
    if _claimed_round(round_number) != lobby.current_round_number:
        raise RoundMismatch()
    if lobby.captains[team] is not caller:
        raise NotCaptain()

    rnd = lobby.current_round
    if rnd is None:
        raise RoundClosed()
    if rnd.has_submitted(team):
        raise AlreadySubmitted()
    if rnd.state != "awaiting_submissions":
        raise RoundClosed()

    steal = bool(is_steal)
    text = None
    if not steal:
        text = clean_text(answer, ANSWER_MAX_LEN)
        if text is None:
            raise InvalidAnswer()

    rnd.record_submission(
        Submission(
            team=team,
            is_steal=steal,
            answer=text,
            player_id=caller.id,
            submitted_at_ms=now if now is not None else now_ms(),
        )
    )
    if rnd.both_submitted():
        rnd.state = "resolving"
        return True
    return False


def expire_round(lobby: Lobby, round_number: int) -> bool:
    """Close the round at its deadline. Missing teams simply never answered."""
    rnd = lobby.current_round
    if lobby.phase != "playing" or rnd is None or rnd.number != round_number:
        return False
    if rnd.state != "awaiting_submissions":
        return False
    rnd.timed_out = True
    rnd.state = "resolving"
    return True


def judge_requests(rnd: Round) -> list[JudgeRequest]:
    # Steals are never judged: their result follows from the other team's answer.
    requests = []
    for t in TEAMS:
        sub = rnd.submissions.get(t)
        if sub is None or sub.is_steal:
            continue
        requests.append(
            JudgeRequest(
                round_number=rnd.number,
                team=t,
                question=rnd.question,
                answer=rnd.answer,
                acceptable_answers=tuple(rnd.acceptable_answers),
                submitted=sub.answer or "",
            )
        )
    return requests


def complete_round(lobby: Lobby, round_number: int, verdicts: dict[str, bool], now: int | None = None) -> Round | None:
    """Apply judged verdicts and score the round.

    Returns None when the round is no longer the one being resolved (the game
    was reset or moved on while judging was in flight).
    """
    rnd = lobby.current_round
    if lobby.phase != "playing" or rnd is None or rnd.number != round_number:
        return None
    if rnd.state != "resolving":
        return None

    plays: dict[str, TeamPlay] = {}
    for t in TEAMS:
        sub = rnd.submissions.get(t)
        if sub is None:
            plays[t] = NO_ANSWER
        elif sub.is_steal:
            plays[t] = TeamPlay(is_steal=True)
        else:
            correct = bool(verdicts.get(t, False))
            rnd.verdicts[t] = correct
            plays[t] = TeamPlay(is_steal=False, correct=correct)

    outcome: Outcome = resolve_outcome(plays["blue"], plays["red"])
    rnd.winner = outcome.winner
    rnd.points = outcome.points
    for t in TEAMS:
        lobby.scores[t] += outcome.points[t]
    rnd.state = "resolved"

    if lobby.is_last_round(rnd):
        lobby.phase = "ended"
        lobby.ended_at_ms = now if now is not None else now_ms()
    return rnd
