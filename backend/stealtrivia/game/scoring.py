"""Steal resolution: turn both teams' plays into a winner and point deltas."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Team, Winner, other_team


STEAL_POINTS = 2
ANSWER_POINTS = 1


@dataclass(frozen=True)
class TeamPlay:
    is_steal: bool
    correct: bool = False  # ignored when stealing


NO_ANSWER = TeamPlay(is_steal=False, correct=False)


@dataclass(frozen=True)
class Outcome:
    winner: Winner
    blue: int
    red: int

    @property
    def points(self) -> dict[str, int]:
        return {"blue": self.blue, "red": self.red}


def _award(team: Team, points: int) -> Outcome:
    return Outcome(winner=team, **{team: points, other_team(team): 0})


def resolve_outcome(blue: TeamPlay, red: TeamPlay) -> Outcome:
    """Apply the steal table.

    - both steal: tie, nobody scores
    - one steals: the answering team takes 2 if it was right, otherwise the
      stealing team takes 2
    - nobody steals: 1 point for each correct team; winner is the only
      correct team, tie when both or neither were right
    """
    if blue.is_steal and red.is_steal:
        return Outcome(winner="tie", blue=0, red=0)

    if blue.is_steal or red.is_steal:
        stealer: Team = "blue" if blue.is_steal else "red"
        answerer = other_team(stealer)
        answer_play = red if answerer == "red" else blue
        if answer_play.correct:
            return _award(answerer, STEAL_POINTS)
        return _award(stealer, STEAL_POINTS)

    if blue.correct and red.correct:
        return Outcome(winner="tie", blue=ANSWER_POINTS, red=ANSWER_POINTS)
    if blue.correct:
        return _award("blue", ANSWER_POINTS)
    if red.correct:
        return _award("red", ANSWER_POINTS)
    return Outcome(winner="tie", blue=0, red=0)


def game_winner(scores: dict[str, int]) -> Winner:
    if scores["blue"] > scores["red"]:
        return "blue"
    if scores["red"] > scores["blue"]:
        return "red"
    return "tie"
