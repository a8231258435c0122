import pytest

from stealtrivia.auth.tokens import TokenService
from stealtrivia.config import Config
from stealtrivia.game.models import Question, Settings
from stealtrivia.game.registry import LobbyRegistry
from stealtrivia.oracles.judge import TextMatchJudge
from stealtrivia.oracles.llm import OracleError
from stealtrivia.realtime.tasks import InlineTaskRunner
from stealtrivia.server import create_app
from stealtrivia.session.commands import SessionService


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    TRUST_PROXY_HEADERS = False
    DEFAULT_ROUNDS = 2
    DEFAULT_ROUND_LIMIT_SEC = 30
    DEFAULT_TAGS = ['Science']
    LLM_API_URL = ''


QUESTION_BANK = [
    ('What is the capital of France?', 'Paris', ['Paris, France']),
    ('Which planet is the largest?', 'Jupiter', []),
    ('What is H2O commonly called?', 'Water', []),
]


class StaticQuestions:
    """Question generator that never talks to a model."""

    def __init__(self):
        self.calls = []

    def generate(self, count, tags):
        self.calls.append((count, list(tags)))
        out = []
        for i in range(count):
            q, a, variants = QUESTION_BANK[i % len(QUESTION_BANK)]
            out.append(Question(question=q, answer=a, tag=tags[0] if tags else 'General', acceptable_answers=variants))
        return out


class FailingQuestions:
    def generate(self, count, tags):
        raise OracleError('model is down')


class ExplodingJudge:
    def judge(self, question, answer, variants, submitted):
        raise RuntimeError('judge crashed')


class RecordingDispatcher:
    def __init__(self):
        self.sent = []

    def __call__(self, notes):
        self.sent.extend(notes)

    def names(self):
        return [n.event for n in self.sent]

    def of(self, event):
        return [n for n in self.sent if n.event == event]

    def last(self, event):
        found = self.of(event)
        return found[-1] if found else None

    def clear(self):
        self.sent = []


@pytest.fixture()
def tasks():
    return InlineTaskRunner()


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def session(tasks, dispatcher):
    return SessionService(
        LobbyRegistry(),
        TokenService('test-secret'),
        tasks,
        dispatcher=dispatcher,
        question_generator=StaticQuestions(),
        judge=TextMatchJudge(),
        default_settings=Settings(rounds=2, round_limit=30, tags=['Science']),
        grace_sec=20,
    )


@pytest.fixture()
def lobby_pair(session):
    """Alice hosts, Bob joins; both are captains of their team."""
    alice = session.create_lobby('Alice')
    code = alice.lobby['code']
    bob = session.join_lobby('Bob', code)
    assert session.team_select(alice.data['token'], code, 'blue', True).success
    assert session.team_select(bob.data['token'], code, 'red', True).success
    return {
        'code': code,
        'alice': alice.data['token'],
        'bob': bob.data['token'],
        'alice_id': alice.data['player']['id'],
        'bob_id': bob.data['player']['id'],
    }


@pytest.fixture()
def flask_app():
    application, _ = create_app(TestConfig)
    application.extensions['stealtrivia.session'].question_generator = StaticQuestions()
    yield application


@pytest.fixture()
def socketio(flask_app):
    return flask_app.extensions['socketio']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def app_tasks(flask_app):
    return flask_app.extensions['stealtrivia.tasks']
