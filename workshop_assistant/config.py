"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_DB_PATH = DATA_DIR / "workshop_assistant.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_COMPLETION_PROVIDER = "groq"
DEFAULT_GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_COMPLETION_TIMEOUT = 45.0
DEFAULT_MAX_SESSIONS = 1000

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def completion_provider() -> str:
    """Name of the completion backend (``groq`` or ``anthropic``)."""
    return os.getenv("COMPLETION_PROVIDER", DEFAULT_COMPLETION_PROVIDER).strip().lower()


def completion_timeout() -> float:
    """Seconds to wait for a completion before giving up."""
    raw = os.getenv("COMPLETION_TIMEOUT")
    if not raw:
        return DEFAULT_COMPLETION_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_COMPLETION_TIMEOUT
    return value if value > 0 else DEFAULT_COMPLETION_TIMEOUT


def max_sessions() -> int:
    """Upper bound on chat sessions kept in memory."""
    raw = os.getenv("MAX_CHAT_SESSIONS")
    if not raw:
        return DEFAULT_MAX_SESSIONS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_SESSIONS
    return value if value > 0 else DEFAULT_MAX_SESSIONS
