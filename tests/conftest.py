"""
tests/conftest.py

Shared fixtures: an isolated data directory per test and a small record factory.
"""

from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from royalties.config import get_settings
from royalties.models import DEFAULT_EXCHANGE_RATES, RoyaltyRecord


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the data directory at tmp_path and drop cached settings."""
    monkeypatch.setenv("ROYALTIES_DATA_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def rates() -> dict:
    return dict(DEFAULT_EXCHANGE_RATES)


@pytest.fixture()
def make_record() -> Callable[..., RoyaltyRecord]:
    counter = {"n": 0}

    def _make(**overrides) -> RoyaltyRecord:
        counter["n"] += 1
        values = dict(
            id=f"r{counter['n']}",
            song_title="Song",
            artist_name="Artist",
            store="Spotify",
            quarter="Q1",
            year=2024,
            streams=1000,
            amount=10.0,
            currency="USD",
            date=date(2024, 1, 15),
            territory="",
        )
        values.update(overrides)
        return RoyaltyRecord(**values)

    return _make
