import os


def _csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Capability tokens
    TOKEN_MAX_AGE_SEC = int(os.environ.get("TOKEN_MAX_AGE_SEC", "3600"))

    # Lobby limits
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "16"))
    MAX_TEAM_SIZE = int(os.environ.get("MAX_TEAM_SIZE", "8"))

    # Game defaults
    DEFAULT_ROUNDS = int(os.environ.get("DEFAULT_ROUNDS", "7"))
    DEFAULT_ROUND_LIMIT_SEC = int(os.environ.get("DEFAULT_ROUND_LIMIT_SEC", "60"))
    DEFAULT_TAGS = _csv(os.environ.get("DEFAULT_TAGS", "General")) or ["General"]

    # Presence
    PRESENCE_GRACE_SEC = int(os.environ.get("PRESENCE_GRACE_SEC", "20"))

    # Question generation / answer judging (OpenAI-compatible chat completions)
    LLM_API_URL = os.environ.get("LLM_API_URL", "")
    LLM_API_KEY = os.environ.get("LLM_API_KEY", "")
    LLM_MODEL = os.environ.get("LLM_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT_SEC = float(os.environ.get("LLM_TIMEOUT_SEC", "10"))
