import pytest

from stealtrivia.auth.tokens import TokenService, bearer_token
from stealtrivia.game.errors import InvalidToken, LobbyMismatch, TokenExpired


def test_issue_and_verify():
    tokens = TokenService('secret')
    cap = tokens.verify(tokens.issue('player_1', 'ABC123', True))
    assert cap.player_id == 'player_1'
    assert cap.lobby_code == 'ABC123'
    assert cap.is_host is True
    assert cap.issued_at > 0


def test_lobby_must_match():
    tokens = TokenService('secret')
    token = tokens.issue('player_1', 'ABC123', False)
    assert tokens.verify(token, 'ABC123').player_id == 'player_1'
    with pytest.raises(LobbyMismatch):
        tokens.verify(token, 'ZZZ999')


@pytest.mark.parametrize('bad', [None, '', 'not-a-token', 123])
def test_garbage_is_rejected(bad):
    with pytest.raises(InvalidToken):
        TokenService('secret').verify(bad)


def test_tampered_or_foreign_tokens_are_rejected():
    token = TokenService('secret').issue('player_1', 'ABC123', False)
    with pytest.raises(InvalidToken):
        TokenService('other-secret').verify(token)
    with pytest.raises(InvalidToken):
        TokenService('secret').verify(('x' if token[0] != 'x' else 'y') + token[1:])


def test_expired_token():
    issuer = TokenService('secret')
    token = issuer.issue('player_1', 'ABC123', False)
    with pytest.raises(TokenExpired):
        TokenService('secret', max_age=-1).verify(token)


def test_error_statuses():
    assert InvalidToken().status == 401
    assert TokenExpired().status == 401
    assert LobbyMismatch().status == 403


@pytest.mark.parametrize(
    'header, expected',
    [
        ('Bearer abc.def', 'abc.def'),
        ('bearer   abc', 'abc'),
        ('Basic abc', None),
        ('Bearer', None),
        ('', None),
        (None, None),
    ],
)
def test_bearer_token(header, expected):
    assert bearer_token(header) == expected
