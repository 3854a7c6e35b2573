"""
tests/test_api.py

FastAPI endpoints exercised through TestClient against an in-memory store.

Coverage
--------
- Health and persistence status
- Dashboard / reports / table payloads
- Record CRUD and error status codes
- Two-step CSV import (preview then confirm)
- Export, template and settings
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_store
from royalties.csv_import import TEMPLATE_CSV
from royalties.persistence import JsonFileStorage, MemoryStorage
from royalties.store import RoyaltyStore

NEW_RECORD = {
    "song_title": "Night Drive",
    "artist_name": "Neon Pulse",
    "store": "Tidal",
    "quarter": "Q4",
    "year": 2024,
    "streams": 4200,
    "amount": 31.5,
    "currency": "EUR",
    "date": "2024-10-05",
    "territory": "Germany",
}

IMPORT_CSV = (
    "Song,Artist,Store,Quarter,Year,Streams,Amount,Currency,Date\n"
    "Test Song,Test Artist,Spotify,Q1,2024,1000,5.50,USD,2024-01-01\n"
    "Free Song,Test Artist,Spotify,Q1,2024,1000,0,USD,2024-01-01"
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> RoyaltyStore:
    return RoyaltyStore(MemoryStorage())


@pytest.fixture()
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


def test_health(client) -> None:
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["persistence"]["ok"] is True


def test_health_stays_degraded_after_unreadable_load(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text("not json{", encoding="utf-8")
    store = RoyaltyStore(JsonFileStorage(path))
    app.dependency_overrides[get_store] = lambda: store
    try:
        client = TestClient(app)
        assert client.post("/sample-data").status_code == 200
        body = client.get("/health").json()
    finally:
        app.dependency_overrides.clear()

    assert body["status"] == "degraded"
    assert body["persistence"]["ok"] is True
    assert body["persistence"]["load_error"]


def test_filter_options(client) -> None:
    body = client.get("/meta/filter-options").json()
    assert body["years"] == [2024]
    assert "Neon Pulse" in body["artists"]


def test_dashboard(client) -> None:
    res = client.get("/dashboard")
    assert res.status_code == 200
    body = res.json()
    assert set(body) >= {"stats", "quarterly", "quarterly_chart", "top_songs", "recent_royalties"}
    assert [p["label"] for p in body["quarterly"]] == ["Q1 2024", "Q2 2024", "Q3 2024"]
    assert body["top_songs"][0]["song_title"] == "Ocean Waves"


def test_reports(client) -> None:
    body = client.get("/reports").json()
    assert body["top_artists"][0]["artist_name"] == "Coastal Sounds"
    assert len(body["store_distribution"]) == 4


def test_royalties_table_applies_filters(client, store) -> None:
    res = client.post("/royalties", json={"artist": "The Melody Makers", "sort_by": "date", "sort_order": "asc"})
    body = res.json()
    assert body["count"] == 2
    assert body["total_count"] == 5
    assert [r["id"] for r in body["rows"]] == ["1", "4"]
    assert store.filters.artist == "The Melody Makers"


# ---------------------------------------------------------------------------
# Record CRUD
# ---------------------------------------------------------------------------


def test_create_update_delete(client, store) -> None:
    res = client.post("/records", json=NEW_RECORD)
    assert res.status_code == 201
    record_id = res.json()["id"]
    assert len(client.get("/records").json()["records"]) == 6

    res = client.put(f"/records/{record_id}", json={**NEW_RECORD, "streams": 5000})
    assert res.status_code == 200
    assert store.get_record(record_id).streams == 5000

    assert client.delete(f"/records/{record_id}").status_code == 204
    assert len(store.records) == 5


def test_invalid_record_is_rejected(client) -> None:
    res = client.post("/records", json={**NEW_RECORD, "currency": "XYZ"})
    assert res.status_code == 422
    assert res.json()["type"] == "InvalidRecordError"


def test_unknown_record_is_404(client) -> None:
    assert client.put("/records/nope", json=NEW_RECORD).status_code == 404
    res = client.delete("/records/nope")
    assert res.status_code == 404
    assert res.json()["type"] == "RecordNotFoundError"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def test_import_preview_does_not_commit(client, store) -> None:
    body = client.post("/import/preview", json={"csv_text": IMPORT_CSV, "filename": "statement.csv"}).json()
    assert body["success"] == 1
    assert body["errors"] == ["Row 3: Missing required data (song, artist, or amount)"]
    assert body["imported"][0]["amount"] == 5.5
    assert len(store.records) == 5


def test_import_preview_rejects_non_csv(client) -> None:
    res = client.post("/import/preview", json={"csv_text": IMPORT_CSV, "filename": "statement.xlsx"})
    assert res.status_code == 400
    assert res.json()["error"] == "Please select a CSV file"


def test_import_preview_empty_file(client) -> None:
    res = client.post("/import/preview", json={"csv_text": "  \n"})
    assert res.status_code == 400
    assert res.json() == {"error": "Empty file", "type": "EmptyInputError"}


def test_import_confirm_assigns_ids(client, store) -> None:
    preview = client.post("/import/preview", json={"csv_text": IMPORT_CSV}).json()
    res = client.post("/import/confirm", json={"records": preview["imported"]})
    assert res.status_code == 201
    body = res.json()
    assert body["imported"] == 1
    assert body["records"][0]["id"]
    assert store.records[-1].song_title == "Test Song"


# ---------------------------------------------------------------------------
# Export, template, settings
# ---------------------------------------------------------------------------


def test_export(client) -> None:
    res = client.get("/export")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "royalties_export_" in res.headers["content-disposition"]
    assert res.text.startswith("Song Title,Artist Name,")


def test_export_without_records(client, store) -> None:
    for record in store.records:
        store.delete_record(record.id)
    res = client.get("/export")
    assert res.status_code == 404
    assert res.json()["error"] == "No data to export"


def test_template(client) -> None:
    res = client.get("/template")
    assert res.text == TEMPLATE_CSV
    assert "royalties_template.csv" in res.headers["content-disposition"]


def test_settings_round_trip(client) -> None:
    assert client.get("/settings").json()["base_currency"] == "USD"
    res = client.put("/settings", json={"base_currency": "EUR"})
    assert res.status_code == 200
    assert res.json()["base_currency"] == "EUR"
    body = client.get("/dashboard").json()
    assert body["base_currency"] == "EUR"


def test_invalid_settings_rejected(client) -> None:
    res = client.put("/settings", json={"exchange_rates": {"USD": 2.0}})
    assert res.status_code == 422
    assert res.json()["type"] == "InvalidSettingsError"


def test_sample_data_reload(client, store) -> None:
    store.delete_record("1")
    assert client.post("/sample-data").json() == {"records": 5}
