from __future__ import annotations

import os
import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .auth.tokens import TokenService
from .config import Config
from .game.models import Settings
from .game.registry import LobbyRegistry
from .oracles.judge import build_answer_judge
from .oracles.questions import build_question_generator
from .realtime.dispatcher import SocketIODispatcher
from .realtime.handlers import register_socketio_handlers
from .realtime.tasks import InlineTaskRunner, SocketIOTaskRunner
from .routes.health import bp as health_bp
from .routes.lobbies import bp as lobbies_bp
from .session.commands import SessionService


def _async_mode(testing: bool) -> str:
    env_async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if env_async_mode:
        return env_async_mode
    # Default choice:
    # - tests and Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if testing or sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config_class: type = Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)
    testing = bool(app.config.get("TESTING", False))

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_async_mode(testing),
    )

    registry = LobbyRegistry()
    tasks = InlineTaskRunner() if testing else SocketIOTaskRunner(socketio)
    dispatcher = SocketIODispatcher(socketio)
    session = SessionService(
        registry,
        TokenService(app.config["SECRET_KEY"], max_age=app.config.get("TOKEN_MAX_AGE_SEC", 3600)),
        tasks,
        dispatcher=dispatcher,
        question_generator=build_question_generator(app.config),
        judge=build_answer_judge(app.config),
        default_settings=Settings(
            rounds=app.config.get("DEFAULT_ROUNDS", 7),
            round_limit=app.config.get("DEFAULT_ROUND_LIMIT_SEC", 60),
            tags=list(app.config.get("DEFAULT_TAGS") or ["General"]),
        ),
        grace_sec=app.config.get("PRESENCE_GRACE_SEC", 20),
        max_players=app.config.get("MAX_PLAYERS", 16),
        max_team_size=app.config.get("MAX_TEAM_SIZE", 8),
    )

    app.extensions["stealtrivia.registry"] = registry
    app.extensions["stealtrivia.tasks"] = tasks
    app.extensions["stealtrivia.dispatcher"] = dispatcher
    app.extensions["stealtrivia.session"] = session

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(lobbies_bp, url_prefix="/api")

    register_socketio_handlers(socketio, session, dispatcher)

    return app, socketio
