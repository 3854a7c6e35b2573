"""
tests/test_app.py

Streamlit script runs through `streamlit.testing.v1.AppTest`.

Coverage
--------
- Editing an imported record whose year is outside the default input range
- Login handed back from the external widget via query params
- Demo login buttons when no widget is configured
"""

from __future__ import annotations

from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from royalties.config import get_settings
from royalties.csv_import import parse_csv
from royalties.persistence import MemoryStorage
from royalties.store import RoyaltyStore

APP_PATH = str(Path(__file__).resolve().parents[1] / "app.py")


def _app() -> AppTest:
    return AppTest.from_file(APP_PATH, default_timeout=60)


def _signed_in(at: AppTest, store: RoyaltyStore) -> AppTest:
    at.session_state["userId"] = "user-1"
    at.session_state["token"] = "tok"
    at.session_state["isNewUser"] = False
    at.session_state["royalty_store"] = store
    return at


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def short_year_store() -> RoyaltyStore:
    """A store holding one imported record whose year came through as 24."""
    store = RoyaltyStore(MemoryStorage())
    for record in store.records:
        store.delete_record(record.id)
    store.import_records(parse_csv("Song,Artist,Year,Amount\nShort Year,Someone,24,5.0").imported)
    return store


# ---------------------------------------------------------------------------
# Royalties page
# ---------------------------------------------------------------------------


def test_edit_record_with_out_of_range_year(short_year_store) -> None:
    record = short_year_store.records[0]
    assert record.year == 24

    at = _signed_in(_app(), short_year_store)
    at.run()
    at.sidebar.radio[0].set_value("Royalties").run()
    next(b for b in at.button if b.label == "Edit").click().run()

    assert not at.exception
    assert at.number_input(key=f"royalty_form_{record.id}_year").value == 24


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_widget_login_is_read_from_query_params(monkeypatch) -> None:
    monkeypatch.setenv("ROYALTIES_LOGIN_WIDGET_URL", "https://login.example.com")
    get_settings.cache_clear()

    at = _app()
    at.query_params["userId"] = "widget-user"
    at.query_params["token"] = "widget-token"
    at.query_params["newUser"] = "false"
    at.run()

    assert not at.exception
    assert at.session_state["userId"] == "widget-user"
    assert at.session_state["token"] == "widget-token"
    assert at.session_state["isNewUser"] is False


def test_widget_login_for_new_user_opens_onboarding(monkeypatch) -> None:
    monkeypatch.setenv("ROYALTIES_LOGIN_WIDGET_URL", "https://login.example.com")
    get_settings.cache_clear()

    at = _app()
    at.query_params["userId"] = "fresh-user"
    at.query_params["token"] = "widget-token"
    at.query_params["newUser"] = "true"
    at.run()

    assert not at.exception
    assert at.title[0].value == "Welcome!"


def test_sign_in_page_without_params(monkeypatch) -> None:
    monkeypatch.delenv("ROYALTIES_LOGIN_WIDGET_URL", raising=False)
    get_settings.cache_clear()

    at = _app()
    at.run()

    assert not at.exception
    assert at.title[0].value == "Royalty Tracker"
    assert any(b.label == "Continue as New User (with Onboarding)" for b in at.button)


def test_demo_login_without_widget(monkeypatch) -> None:
    monkeypatch.delenv("ROYALTIES_LOGIN_WIDGET_URL", raising=False)
    get_settings.cache_clear()

    at = _app()
    at.run()
    next(b for b in at.button if b.label == "Continue as Existing User").click().run()

    assert not at.exception
    assert at.session_state["userId"] == "demo-user-existing"
