"""
Environment configuration for the trainer core.

All settings come from environment variables (optionally loaded from a
.env file). TEST_MODE=true points every store at its test database.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment
load_dotenv()

# Configuration
DEFAULT_DB_NAME = "nihongo_trainer"
DATA_DIR = Path("data")

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENAI_TTS_MODEL = os.getenv("OPENAI_TTS_MODEL", "tts-1")


def is_test_mode() -> bool:
    """Check if running in test mode."""
    return os.getenv("TEST_MODE", "false").lower() == "true"


def get_mongo_uri() -> Optional[str]:
    """
    Get the remote store connection string.

    Returns:
        MONGO_URI, or None when the remote store is not configured
        (every caller is then served from the local store)
    """
    return os.getenv("MONGO_URI") or None


def get_mongo_db_name() -> str:
    """
    Get the remote database name.

    In test mode the name is prefixed with "test_" so test runs never
    touch the production database.
    """
    name = os.getenv("MONGO_DB_NAME", DEFAULT_DB_NAME)
    if is_test_mode():
        return f"test_{name}"
    return name


def get_local_store_url() -> str:
    """
    Get the SQLAlchemy URL of the local document store.

    Defaults to a SQLite file under data/ (test_local_store.db in test mode).
    """
    url = os.getenv("LOCAL_STORE_URL")
    if url:
        return url
    db_name = "test_local_store.db" if is_test_mode() else "local_store.db"
    return f"sqlite:///{DATA_DIR / db_name}"


def get_api_key(provider: str) -> Optional[str]:
    """Fallback API key for a provider ("openai", "gemini" or "google_tts") from the environment."""
    env_names = {
        "openai": "OPENAI_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "google_tts": "GOOGLE_TTS_API_KEY",
    }
    env_name = env_names.get(provider)
    if env_name is None:
        return None
    return os.getenv(env_name) or None


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; defaults to LOG_LEVEL (INFO if unset)
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
