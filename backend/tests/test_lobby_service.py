import re

import pytest

from stealtrivia.game import service
from stealtrivia.game.errors import (
    AlreadyStarted,
    CannotKickHost,
    GameAlreadyStarted,
    InvalidName,
    InvalidSettings,
    LobbyFull,
    LobbyNotFound,
    MissingCaptain,
    NotHost,
    NotInGame,
    TargetNotFound,
)
from stealtrivia.game.models import Question
from stealtrivia.game.registry import LobbyRegistry


@pytest.fixture()
def registry():
    return LobbyRegistry()


@pytest.fixture()
def lobby(registry):
    return service.create_lobby(registry, 'Alice')


def captains_ready(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    lobby.assign_team(lobby.host, 'blue', True)
    lobby.assign_team(bob, 'red', True)
    return bob


def test_create_lobby(registry, lobby):
    assert re.fullmatch(r'[A-Z0-9]{6}', lobby.code)
    assert lobby.code in registry
    assert lobby.host.is_host
    assert lobby.host.team == 'blue'
    assert lobby.teams['blue'] == [lobby.host]
    assert lobby.captains == {'blue': None, 'red': None}
    assert lobby.phase == 'pregame'
    assert registry.lobby_code_for(lobby.host.id) == lobby.code


@pytest.mark.parametrize('name', ['', '   ', 'x' * 11, '<b>hi', 'a\nb', None])
def test_create_lobby_rejects_bad_names(registry, name):
    with pytest.raises(InvalidName):
        service.create_lobby(registry, name)
    assert len(registry) == 0


def test_join_balances_teams(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    carol = service.join_lobby(lobby, 'Carol')
    dave = service.join_lobby(lobby, ' Dave ')
    assert bob.team == 'red'
    assert carol.team == 'blue'
    assert dave.team == 'red'
    assert dave.name == 'Dave'
    assert len({p.id for p in lobby.all_players()}) == 4


def test_join_full_lobby_changes_nothing(registry):
    lobby = service.create_lobby(registry, 'Alice', max_players=2)
    service.join_lobby(lobby, 'Bob')
    with pytest.raises(LobbyFull):
        service.join_lobby(lobby, 'Carol')
    assert lobby.total_players() == 2


def test_join_checks_name_before_capacity(registry):
    lobby = service.create_lobby(registry, 'Alice', max_players=1)
    with pytest.raises(InvalidName):
        service.join_lobby(lobby, '')
    with pytest.raises(LobbyFull):
        service.join_lobby(lobby, 'Bob')


def test_join_after_start_is_rejected(lobby):
    captains_ready(lobby)
    service.start_game(lobby, lobby.host)
    with pytest.raises(GameAlreadyStarted):
        service.join_lobby(lobby, 'Late')
    assert lobby.total_players() == 2


def test_update_settings(lobby):
    changed = service.update_settings(lobby, lobby.host, {'rounds': 5, 'roundLimit': 90, 'tags': ['Art', 'Art', ' Film ']})
    assert changed == ['rounds', 'roundLimit', 'tags']
    assert lobby.settings.rounds == 5
    assert lobby.settings.round_limit == 90
    assert lobby.settings.tags == ['Art', 'Film']


@pytest.mark.parametrize(
    'patch',
    [
        {'rounds': 0},
        {'rounds': 21},
        {'rounds': True},
        {'rounds': '5'},
        {'roundLimit': 14},
        {'roundLimit': 121},
        {'tags': []},
        {'tags': 'Science'},
        {'tags': ['x' * 41]},
        {'tags': [f't{i}' for i in range(11)]},
        {'rounds': 5, 'roundLimit': 500},
        'not a dict',
    ],
)
def test_update_settings_is_all_or_nothing(lobby, patch):
    before = (lobby.settings.rounds, lobby.settings.round_limit, list(lobby.settings.tags))
    with pytest.raises(InvalidSettings):
        service.update_settings(lobby, lobby.host, patch)
    assert (lobby.settings.rounds, lobby.settings.round_limit, list(lobby.settings.tags)) == before


def test_update_settings_host_only(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    with pytest.raises(NotHost):
        service.update_settings(lobby, bob, {'rounds': 3})


def test_update_settings_allowed_mid_game(lobby):
    captains_ready(lobby)
    service.start_game(lobby, lobby.host)
    assert service.update_settings(lobby, lobby.host, {'roundLimit': 45}) == ['roundLimit']


def test_team_select_only_in_pregame(lobby):
    bob = captains_ready(lobby)
    service.start_game(lobby, lobby.host)
    with pytest.raises(GameAlreadyStarted):
        service.team_select(lobby, bob, 'blue')
    assert bob.team == 'red'


def test_kick_rules(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    carol = service.join_lobby(lobby, 'Carol')

    with pytest.raises(NotHost):
        service.kick_player(lobby, bob, carol.id)
    with pytest.raises(CannotKickHost):
        service.kick_player(lobby, lobby.host, lobby.host.id)
    with pytest.raises(TargetNotFound):
        service.kick_player(lobby, lobby.host, 'player_missing')
    assert lobby.total_players() == 3

    assert service.kick_player(lobby, lobby.host, bob.id) is bob
    assert lobby.get_player(bob.id) is None


def test_leave_reports_host_departure(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    assert service.leave_lobby(lobby, bob) is False
    assert service.leave_lobby(lobby, lobby.host) is True


def test_start_game_checks(lobby):
    bob = service.join_lobby(lobby, 'Bob')
    with pytest.raises(NotHost):
        service.start_game(lobby, bob)
    with pytest.raises(MissingCaptain):
        service.start_game(lobby, lobby.host)

    lobby.assign_team(lobby.host, 'blue', True)
    lobby.assign_team(bob, 'red', True)
    game_id = service.start_game(lobby, lobby.host)
    assert game_id == 1
    assert lobby.phase == 'playing'
    assert lobby.rounds_ready is False

    with pytest.raises(AlreadyStarted):
        service.start_game(lobby, lobby.host)


def test_install_rounds(lobby):
    captains_ready(lobby)
    lobby.settings.rounds = 2
    game_id = service.start_game(lobby, lobby.host)

    assert service.install_rounds(lobby, game_id + 1, [Question('Q?', 'A')]) is False
    assert lobby.rounds == []

    assert service.install_rounds(lobby, game_id, None) is True
    assert [r.question for r in lobby.rounds] == [
        'Question 1 (Failed to generate)',
        'Question 2 (Failed to generate)',
    ]
    assert [r.number for r in lobby.rounds] == [1, 2]

    # Only the first result for a game counts.
    assert service.install_rounds(lobby, game_id, [Question('Q?', 'A'), Question('R?', 'B')]) is False


def test_return_to_lobby(lobby):
    bob = captains_ready(lobby)
    with pytest.raises(NotInGame):
        service.return_to_lobby(lobby, lobby.host)

    game_id = service.start_game(lobby, lobby.host)
    service.install_rounds(lobby, game_id, None)
    with pytest.raises(NotHost):
        service.return_to_lobby(lobby, bob)

    service.return_to_lobby(lobby, lobby.host)
    assert lobby.phase == 'pregame'
    assert lobby.rounds == []
    assert lobby.scores == {'blue': 0, 'red': 0}
    assert lobby.captains['red'] is bob


def test_registry_lock_rejects_removed_lobby(registry, lobby):
    with registry.locked(lobby.code) as locked:
        assert locked is lobby
    registry.remove(lobby.code)
    with pytest.raises(LobbyNotFound):
        with registry.locked(lobby.code):
            pass
    assert registry.lobby_code_for(lobby.host.id) is None
