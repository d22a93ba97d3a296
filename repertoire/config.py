"""Runtime settings, read from the environment."""

import os


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return os.environ.get(
        "DATABASE_URL",
        "postgresql://localhost:5432/chess_openings?user=postgres&password=postgres",
    )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def match_openings_limit() -> int:
    return _int_env("MATCH_OPENINGS_LIMIT", 15)


def match_transitions_limit() -> int:
    return _int_env("MATCH_TRANSITIONS_LIMIT", 10)


def variations_limit() -> int:
    return _int_env("VARIATIONS_LIMIT", 10)


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def log_json() -> bool:
    return os.environ.get("LOG_JSON", "").lower() in ("1", "true", "yes", "on")


def match_api_url() -> str:
    return os.environ.get("MATCH_API_URL", "http://localhost:8000")
