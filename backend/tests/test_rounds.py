import pytest

from stealtrivia.game import rounds, service
from stealtrivia.game.errors import (
    AlreadySubmitted,
    GameNotPlaying,
    InvalidAnswer,
    InvalidTeam,
    NoRoundsRemaining,
    NotCaptain,
    NotHost,
    QuestionsPending,
    RoundClosed,
    RoundInProgress,
    RoundMismatch,
    ValidationError,
)
from stealtrivia.game.models import Question
from stealtrivia.game.registry import LobbyRegistry


QUESTIONS = [
    Question('What is the capital of France?', 'Paris'),
    Question('Which planet is the largest?', 'Jupiter', acceptable_answers=['planet jupiter']),
]


@pytest.fixture()
def game():
    lobby = service.create_lobby(LobbyRegistry(), 'Alice')
    lobby.settings.rounds = 2
    bob = service.join_lobby(lobby, 'Bob')
    carol = service.join_lobby(lobby, 'Carol')
    lobby.assign_team(lobby.host, 'blue', True)
    lobby.assign_team(bob, 'red', True)
    game_id = service.start_game(lobby, lobby.host)
    return lobby, lobby.host, bob, carol, game_id


@pytest.fixture()
def ready(game):
    lobby, alice, bob, carol, game_id = game
    assert service.install_rounds(lobby, game_id, list(QUESTIONS))
    return game


def test_advance_requires_questions(game):
    lobby, alice, *_ = game
    with pytest.raises(QuestionsPending):
        rounds.advance_round(lobby, alice)


def test_advance_opens_round_with_deadline(ready):
    lobby, alice, bob, *_ = ready
    with pytest.raises(NotHost):
        rounds.advance_round(lobby, bob)

    rnd = rounds.advance_round(lobby, alice, now=1_000)
    assert rnd.number == 1
    assert rnd.state == 'awaiting_submissions'
    assert rnd.deadline_ms == 1_000 + lobby.settings.round_limit * 1000
    assert lobby.current_round is rnd

    with pytest.raises(RoundInProgress):
        rounds.advance_round(lobby, alice)


def test_advance_outside_game(ready):
    lobby, alice, *_ = ready
    service.return_to_lobby(lobby, alice)
    with pytest.raises(GameNotPlaying):
        rounds.advance_round(lobby, alice)


def test_no_rounds_remaining(ready):
    lobby, alice, *_ = ready
    for rnd in lobby.rounds:
        rnd.state = 'resolved'
    lobby.current_round_number = len(lobby.rounds)
    with pytest.raises(NoRoundsRemaining):
        rounds.advance_round(lobby, alice)


def test_submission_guards_leave_round_untouched(ready):
    lobby, alice, bob, carol, _ = ready
    rnd = rounds.advance_round(lobby, alice)

    with pytest.raises(NotCaptain):
        rounds.submit_answer(lobby, carol, False, 'Paris', 'blue', 1)
    with pytest.raises(NotCaptain):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'red', 1)
    with pytest.raises(RoundMismatch):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', 2)
    with pytest.raises(ValidationError):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', 'one')
    with pytest.raises(InvalidTeam):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'green', 1)
    with pytest.raises(InvalidAnswer):
        rounds.submit_answer(lobby, alice, False, '   ', 'blue', 1)
    with pytest.raises(InvalidAnswer):
        rounds.submit_answer(lobby, alice, False, 'x' * 101, 'blue', 1)

    assert rnd.submissions == {}
    assert rnd.state == 'awaiting_submissions'


def test_submit_outside_game(game):
    lobby, alice, *_ = game
    service.return_to_lobby(lobby, alice)
    with pytest.raises(GameNotPlaying):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', 1)


def test_double_submission_keeps_first(ready):
    lobby, alice, *_ = ready
    rnd = rounds.advance_round(lobby, alice)

    assert rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', 1) is False
    with pytest.raises(AlreadySubmitted):
        rounds.submit_answer(lobby, alice, True, None, 'blue', 1)
    assert rnd.submissions['blue'].answer == 'Paris'
    assert rnd.submissions['blue'].is_steal is False


def test_both_submissions_close_the_round(ready):
    lobby, alice, bob, *_ = ready
    rnd = rounds.advance_round(lobby, alice)

    assert rounds.submit_answer(lobby, alice, False, ' paris ', 'blue', 1) is False
    assert rounds.submit_answer(lobby, bob, True, None, 'red', 1) is True
    assert rnd.state == 'resolving'
    assert rnd.submissions['red'].answer is None

    requests = rounds.judge_requests(rnd)
    assert [(r.team, r.submitted, r.answer) for r in requests] == [('blue', 'paris', 'Paris')]

    done = rounds.complete_round(lobby, 1, {'blue': True})
    assert done is rnd
    assert rnd.state == 'resolved'
    assert rnd.winner == 'blue'
    assert rnd.points == {'blue': 2, 'red': 0}
    assert lobby.scores == {'blue': 2, 'red': 0}
    assert lobby.phase == 'playing'


def test_expiry_scores_missing_team_as_wrong(ready):
    lobby, alice, *_ = ready
    rnd = rounds.advance_round(lobby, alice)
    rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', 1)

    assert rounds.expire_round(lobby, 1) is True
    assert rnd.timed_out is True
    assert rnd.state == 'resolving'
    # Already closed: a late timer or submission does nothing.
    assert rounds.expire_round(lobby, 1) is False
    with pytest.raises(RoundClosed):
        rounds.submit_answer(lobby, lobby.captains['red'], False, 'Paris', 'red', 1)

    rounds.complete_round(lobby, 1, {'blue': True})
    assert rnd.points == {'blue': 1, 'red': 0}
    assert rnd.verdicts == {'blue': True}


def test_steal_against_silent_team_wins(ready):
    lobby, alice, *_ = ready
    rnd = rounds.advance_round(lobby, alice)
    rounds.submit_answer(lobby, alice, True, None, 'blue', 1)
    rounds.expire_round(lobby, 1)
    assert rounds.judge_requests(rnd) == []
    rounds.complete_round(lobby, 1, {})
    assert rnd.points == {'blue': 2, 'red': 0}


def test_stale_expiry_and_completion_are_ignored(ready):
    lobby, alice, *_ = ready
    rounds.advance_round(lobby, alice)
    assert rounds.expire_round(lobby, 2) is False
    assert rounds.complete_round(lobby, 1, {'blue': True}) is None

    rounds.expire_round(lobby, 1)
    service.return_to_lobby(lobby, alice)
    assert rounds.complete_round(lobby, 1, {'blue': True}) is None
    assert lobby.scores == {'blue': 0, 'red': 0}


def test_last_round_ends_game(ready):
    lobby, alice, bob, *_ = ready
    for number, (blue_answer, red_answer) in enumerate([('Paris', 'Lyon'), ('Saturn', 'Planet Jupiter')], start=1):
        rounds.advance_round(lobby, alice)
        rounds.submit_answer(lobby, alice, False, blue_answer, 'blue', number)
        rounds.submit_answer(lobby, bob, False, red_answer, 'red', number)
        verdicts = {'blue': number == 1, 'red': number == 2}
        rounds.complete_round(lobby, number, verdicts, now=99)

    assert lobby.phase == 'ended'
    assert lobby.ended_at_ms == 99
    assert lobby.scores == {'blue': 1, 'red': 1}
    with pytest.raises(GameNotPlaying):
        rounds.advance_round(lobby, alice)


@pytest.mark.parametrize('claimed', [1.9, 0.5, '1.0', 'round 1', None, True, [1]])
def test_round_number_must_be_whole(ready, claimed):
    lobby, alice, *_ = ready
    rnd = rounds.advance_round(lobby, alice)
    with pytest.raises(ValidationError):
        rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', claimed)
    assert rnd.submissions == {}


@pytest.mark.parametrize('claimed', [1, 1.0, '1', ' 1 '])
def test_round_number_accepts_whole_values(ready, claimed):
    lobby, alice, *_ = ready
    rounds.advance_round(lobby, alice)
    assert rounds.submit_answer(lobby, alice, False, 'Paris', 'blue', claimed) is False
    assert 'blue' in lobby.current_round.submissions
