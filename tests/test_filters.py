"""
tests/test_filters.py

Filter normalization, exact-match filtering and table sorting.
"""

from __future__ import annotations

from datetime import date

import pytest

from royalties.data import records_to_frame
from royalties.filters import (
    RoyaltyFilters,
    apply_filters,
    normalize_filters,
    reset_filters,
    sort_frame,
    update_filters,
)


# ---------------------------------------------------------------------------
# normalize_filters
# ---------------------------------------------------------------------------


def test_defaults() -> None:
    filters = normalize_filters(None)
    assert filters == RoyaltyFilters()
    assert filters.sort_by == "date"
    assert filters.sort_order == "desc"
    assert filters.has_active_filters is False


def test_coerces_and_cleans_values() -> None:
    filters = normalize_filters(
        {"quarter": "Q7", "year": "2024", "artist": "  ", "song": "Hit", "sort_by": "bogus", "sort_order": "ASC"}
    )
    assert filters.quarter is None
    assert filters.year == 2024
    assert filters.artist is None
    assert filters.song == "Hit"
    assert filters.sort_by == "date"
    assert filters.sort_order == "asc"
    assert filters.has_active_filters is True


def test_unparsable_year_is_dropped() -> None:
    assert normalize_filters({"year": "twenty"}).year is None


def test_update_and_reset() -> None:
    filters = update_filters(RoyaltyFilters(), {"store": "Tidal", "sort_by": "amount"})
    assert (filters.store, filters.sort_by) == ("Tidal", "amount")
    filters = update_filters(filters, {"store": None})
    assert filters.store is None
    assert filters.sort_by == "amount"
    assert reset_filters() == RoyaltyFilters()


# ---------------------------------------------------------------------------
# apply_filters / sort_frame
# ---------------------------------------------------------------------------


@pytest.fixture()
def frame(make_record, rates):
    records = [
        make_record(song_title="beta", artist_name="Neon Pulse", amount=110.0, currency="USD", year=2023, date=date(2023, 9, 2)),
        make_record(song_title="Alpha", artist_name="Neon", amount=100.0, currency="EUR", year=2024, date=date(2024, 1, 3)),
        make_record(song_title="alpha2", artist_name="Neon Pulse", amount=50.0, currency="USD", year=2024, date=date(2023, 12, 31)),
    ]
    return records_to_frame(records, "USD", rates)


def test_filters_use_exact_equality(frame) -> None:
    out = apply_filters(frame, RoyaltyFilters(artist="Neon"))
    assert out["song_title"].tolist() == ["Alpha"]


def test_all_set_filters_must_match(frame) -> None:
    out = apply_filters(frame, RoyaltyFilters(artist="Neon Pulse", year=2024))
    assert out["song_title"].tolist() == ["alpha2"]


def test_unset_filters_pass_everything(frame) -> None:
    assert len(apply_filters(frame, RoyaltyFilters())) == 3


def test_amount_sort_uses_converted_value(frame) -> None:
    out = sort_frame(frame, RoyaltyFilters(sort_by="amount", sort_order="desc"))
    # 100 EUR is about 117.65 USD, above 110 USD.
    assert out["song_title"].tolist() == ["Alpha", "beta", "alpha2"]


def test_text_sort_is_case_insensitive(frame) -> None:
    out = sort_frame(frame, RoyaltyFilters(sort_by="song_title", sort_order="asc"))
    assert out["song_title"].tolist() == ["Alpha", "alpha2", "beta"]


def test_date_sort_is_chronological(frame) -> None:
    out = sort_frame(frame, RoyaltyFilters(sort_by="date", sort_order="asc"))
    assert out["song_title"].tolist() == ["beta", "alpha2", "Alpha"]


def test_year_sort_is_numeric(frame) -> None:
    out = sort_frame(frame, RoyaltyFilters(sort_by="year", sort_order="desc"))
    assert out["year"].tolist() == [2024, 2024, 2023]
