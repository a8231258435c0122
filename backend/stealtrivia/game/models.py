from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import AlreadyOnTeam, CaptaincyConflict, InvalidTeam, TeamFull


Team = Literal["blue", "red"]
Phase = Literal["pregame", "playing", "ended"]
RoundState = Literal["not_started", "awaiting_submissions", "resolving", "resolved"]
Winner = Literal["blue", "red", "tie"]
Connection = Literal["connected", "disconnected"]

TEAMS: tuple[Team, Team] = ("blue", "red")


def other_team(team: Team) -> Team:
    return "red" if team == "blue" else "blue"


def ensure_team(team: Any) -> Team:
    if team not in TEAMS:
        raise InvalidTeam()
    return team


@dataclass(eq=False)
class Player:
    id: str
    name: str
    is_host: bool = False
    is_captain: bool = False
    team: Team | None = None
    connection: Connection = "connected"
    joined_at_ms: int = 0

    @property
    def connected(self) -> bool:
        return self.connection == "connected"


@dataclass
class Settings:
    rounds: int = 7
    round_limit: int = 60
    tags: list[str] = field(default_factory=lambda: ["General"])


@dataclass
class Question:
    question: str
    answer: str
    tag: str = "General"
    acceptable_answers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Submission:
    team: Team
    is_steal: bool
    answer: str | None
    player_id: str
    submitted_at_ms: int


@dataclass
class Round:
    number: int
    question: str
    answer: str
    tag: str = "General"
    acceptable_answers: list[str] = field(default_factory=list)
    state: RoundState = "not_started"
    deadline_ms: int | None = None
    submissions: dict[str, Submission] = field(default_factory=dict)
    verdicts: dict[str, bool] = field(default_factory=dict)
    timed_out: bool = False
    winner: Winner | None = None
    points: dict[str, int] = field(default_factory=lambda: {"blue": 0, "red": 0})

    @classmethod
    def from_question(cls, number: int, q: Question) -> "Round":
        return cls(
            number=number,
            question=q.question,
            answer=q.answer,
            tag=q.tag,
            acceptable_answers=list(q.acceptable_answers),
        )

    def has_submitted(self, team: Team) -> bool:
        return team in self.submissions

    def both_submitted(self) -> bool:
        return all(t in self.submissions for t in TEAMS)

    def record_submission(self, submission: Submission) -> None:
        # Callers check AlreadySubmitted first; reaching here twice is a bug.
        assert submission.team not in self.submissions, "submission already recorded"
        self.submissions[submission.team] = submission


@dataclass
class Lobby:
    code: str
    host: Player
    settings: Settings = field(default_factory=Settings)
    max_players: int = 16
    max_team_size: int = 8
    teams: dict[str, list[Player]] = field(default_factory=lambda: {"blue": [], "red": []})
    captains: dict[str, Player | None] = field(default_factory=lambda: {"blue": None, "red": None})
    phase: Phase = "pregame"
    rounds: list[Round] = field(default_factory=list)
    rounds_ready: bool = False
    current_round_number: int = 0
    scores: dict[str, int] = field(default_factory=lambda: {"blue": 0, "red": 0})
    game_id: int = 0
    started_at_ms: int | None = None
    ended_at_ms: int | None = None
    # Handle of the scheduled deadline for the current round (not part of snapshots).
    round_timer: Any = field(default=None, repr=False, compare=False)

    # -- roster ---------------------------------------------------------

    def all_players(self) -> list[Player]:
        return [*self.teams["blue"], *self.teams["red"]]

    def total_players(self) -> int:
        return len(self.teams["blue"]) + len(self.teams["red"])

    def team_size(self, team: Team) -> int:
        return len(self.teams[team])

    def get_player(self, player_id: str) -> Player | None:
        for p in self.all_players():
            if p.id == player_id:
                return p
        return None

    def assign_team(self, player: Player, team: Any, as_captain: bool = False) -> None:
        """Move ``player`` onto ``team``, optionally as captain, in one step.

        Everything is validated before anything is touched, so a failed call
        leaves the roster exactly as it was.
        """
        team = ensure_team(team)
        as_captain = bool(as_captain)
        roster = self.teams[team]
        staying = player.team == team and player in roster

        if staying and player.is_captain == as_captain:
            raise AlreadyOnTeam()
        if not staying and len(roster) >= self.max_team_size:
            raise TeamFull(f"{team.capitalize()} team is full")
        current_captain = self.captains[team]
        if as_captain and current_captain is not None and current_captain is not player:
            raise CaptaincyConflict(f"{team.capitalize()} captain already exists")

        if staying:
            if not as_captain and current_captain is player:
                self.captains[team] = None
        else:
            self._detach(player)
            roster.append(player)
            player.team = team
        player.is_captain = as_captain
        if as_captain:
            self.captains[team] = player

        self._check_roster(player)

    def remove_player(self, player: Player) -> None:
        self._detach(player)

    def _detach(self, player: Player) -> None:
        for t in TEAMS:
            self.teams[t][:] = [p for p in self.teams[t] if p is not player]
            if self.captains[t] is player:
                self.captains[t] = None
        player.team = None
        player.is_captain = False

    def _check_roster(self, player: Player) -> None:
        memberships = sum(1 for t in TEAMS if player in self.teams[t])
        assert memberships == 1, f"player {player.id} on {memberships} teams"
        for t in TEAMS:
            cap = self.captains[t]
            assert cap is None or cap in self.teams[t], f"{t} captain is not a member"
            assert len(self.teams[t]) <= self.max_team_size, f"{t} team over capacity"

    # -- game -----------------------------------------------------------

    @property
    def current_round(self) -> Round | None:
        if self.current_round_number <= 0 or self.current_round_number > len(self.rounds):
            return None
        return self.rounds[self.current_round_number - 1]

    def is_last_round(self, rnd: Round) -> bool:
        return rnd.number >= len(self.rounds)

    def reset_game(self) -> None:
        self.rounds = []
        self.rounds_ready = False
        self.current_round_number = 0
        self.scores = {"blue": 0, "red": 0}
        self.ended_at_ms = None
