from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# BASE_DIR points to the project root
BASE_DIR = Path(__file__).resolve().parents[2]
PACKAGE_DIR = BASE_DIR / "stronghold"
CATALOG_PATH = PACKAGE_DIR / "catalog" / "exercises.json"

DEFAULT_USER_ID = 1

# Joint readings at or below this value ask for joint-friendly substitutes.
JOINT_FRIENDLY_THRESHOLD = 6
DEFAULT_DURATION_MINUTES = 20
DEFAULT_REST_SECONDS = 60
RECENT_WORKOUTS_LIMIT = 10
RECENT_CHECK_INS_LIMIT = 7

DEFAULT_LLM_MODEL = "gpt-4o"
LLM_REQUEST_TIMEOUT = 30


def _store_check_ins_key(user_id: int) -> str:
    return f"stronghold:{user_id}:check_ins"


def _store_workouts_key(user_id: int) -> str:
    return f"stronghold:{user_id}:workouts"


def _store_user_data_key(user_id: int) -> str:
    return f"stronghold:{user_id}:user_data"


def llm_model() -> str:
    return os.getenv("STRONGHOLD_LLM_MODEL", DEFAULT_LLM_MODEL).strip() or DEFAULT_LLM_MODEL


def load_environment() -> None:
    """Load the root .env, then the package .env, and apply the log level."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    load_dotenv(dotenv_path=PACKAGE_DIR / ".env")
    level = os.getenv("STRONGHOLD_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
