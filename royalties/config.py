"""
royalties/config.py

Environment-driven application settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def load_env_files() -> None:
    """Load `.env.local` and `.env` from the project root; the process environment wins, then `.env.local`."""
    for filename in (".env.local", ".env"):
        load_dotenv(PROJECT_ROOT / filename, override=False)


@dataclass(frozen=True)
class AppSettings:
    data_dir: Path
    storage_key: str
    log_level: str
    cors_origins: Tuple[str, ...]
    login_widget_url: str

    @property
    def state_path(self) -> Path:
        return self.data_dir / f"{self.storage_key}.json"


def _split_origins(raw: str | None) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Read settings once per process. Call `get_settings.cache_clear()` after
    changing the environment (tests do this).
    """

    load_env_files()
    data_dir = Path(os.getenv("ROYALTIES_DATA_DIR") or PROJECT_ROOT / "data")
    return AppSettings(
        data_dir=data_dir,
        storage_key=(os.getenv("ROYALTIES_STORAGE_KEY") or "royaltiesData").strip(),
        log_level=(os.getenv("ROYALTIES_LOG_LEVEL") or "INFO").strip().upper(),
        cors_origins=_split_origins(os.getenv("ROYALTIES_CORS_ORIGINS")),
        login_widget_url=(os.getenv("ROYALTIES_LOGIN_WIDGET_URL") or "").strip(),
    )


_logging_configured = False


def configure_logging(level: str | None = None) -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _logging_configured = True
