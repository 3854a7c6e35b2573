from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import pandas as pd

from royalties.models import QUARTERS, RECORD_FIELDS

SORT_ORDERS = ("asc", "desc")

# Filter field -> record column it matches exactly.
FILTER_COLUMNS: Dict[str, str] = {
    "quarter": "quarter",
    "year": "year",
    "artist": "artist_name",
    "song": "song_title",
    "store": "store",
}


@dataclass(frozen=True)
class RoyaltyFilters:
    quarter: Optional[str] = None
    year: Optional[int] = None
    artist: Optional[str] = None
    song: Optional[str] = None
    store: Optional[str] = None
    sort_by: str = "date"
    sort_order: str = "desc"

    @property
    def has_active_filters(self) -> bool:
        return any(getattr(self, name) not in (None, "") for name in FILTER_COLUMNS)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return None


def _as_optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


def normalize_filters(raw: dict | None) -> RoyaltyFilters:
    raw = raw or {}
    quarter = _as_optional_str(raw.get("quarter"))
    if quarter is not None and quarter not in QUARTERS:
        quarter = None

    sort_by = str(raw.get("sort_by") or "date")
    if sort_by not in RECORD_FIELDS:
        sort_by = "date"
    sort_order = str(raw.get("sort_order") or "desc").lower()
    if sort_order not in SORT_ORDERS:
        sort_order = "desc"

    return RoyaltyFilters(
        quarter=quarter,
        year=_as_optional_int(raw.get("year")),
        artist=_as_optional_str(raw.get("artist")),
        song=_as_optional_str(raw.get("song")),
        store=_as_optional_str(raw.get("store")),
        sort_by=sort_by,
        sort_order=sort_order,
    )


def update_filters(filters: RoyaltyFilters, changes: dict) -> RoyaltyFilters:
    merged = {**filters.to_dict(), **changes}
    return normalize_filters(merged)


def reset_filters() -> RoyaltyFilters:
    return RoyaltyFilters()


def apply_filters(df: pd.DataFrame, filters: RoyaltyFilters) -> pd.DataFrame:
    """Keep rows whose fields equal every set filter value."""
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    for name, col in FILTER_COLUMNS.items():
        wanted = getattr(filters, name)
        if wanted in (None, ""):
            continue
        mask &= df[col] == wanted
    return df[mask]


def sort_frame(df: pd.DataFrame, filters: RoyaltyFilters) -> pd.DataFrame:
    """Stable sort by the filter's sort key; exact ties keep collection order."""
    if df.empty:
        return df
    ascending = filters.sort_order == "asc"
    if filters.sort_by == "amount":
        by = "converted_amount"
        key = None
    elif filters.sort_by == "date":
        by = "date"
        key = pd.to_datetime
    elif filters.sort_by in ("year", "streams"):
        by = filters.sort_by
        key = None
    else:
        by = filters.sort_by
        key = lambda s: s.astype(str).str.lower()  # noqa: E731
    return df.sort_values(by=by, ascending=ascending, kind="mergesort", key=key)
