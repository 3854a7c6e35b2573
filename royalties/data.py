from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from royalties.currency import convert_series
from royalties.filters import RoyaltyFilters, apply_filters, normalize_filters, sort_frame
from royalties.models import RECORD_FIELDS, RoyaltyRecord

FRAME_COLUMNS = ["id", *RECORD_FIELDS.keys()]


def records_to_frame(records: Iterable[RoyaltyRecord], base_currency: str, rates: Mapping[str, float]) -> pd.DataFrame:
    """One row per record plus `converted_amount` in the base currency."""
    rows = [{"id": r.id, **{name: getattr(r, name) for name in RECORD_FIELDS}} for r in records]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if df.empty:
        df["converted_amount"] = pd.Series(dtype=float)
        return df
    df["year"] = df["year"].astype(int)
    df["streams"] = df["streams"].astype(int)
    df["amount"] = df["amount"].astype(float)
    df["converted_amount"] = convert_series(df["amount"], df["currency"], base_currency, rates)
    return df


def frame_to_records(df: pd.DataFrame, records: Iterable[RoyaltyRecord]) -> List[RoyaltyRecord]:
    by_id = {r.id: r for r in records}
    return [by_id[i] for i in df["id"].tolist() if i in by_id]


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


# ---------------- Groupings ----------------
def group_by_period(df: pd.DataFrame) -> pd.DataFrame:
    """Earnings and streams per (year, quarter), ascending by year then quarter label."""
    if df.empty:
        return pd.DataFrame(columns=["year", "quarter", "label", "earnings", "streams"])
    out = (
        df.groupby(["year", "quarter"], sort=True)
        .agg(earnings=("converted_amount", "sum"), streams=("streams", "sum"))
        .reset_index()
    )
    out.insert(2, "label", out["quarter"] + " " + out["year"].astype(str))
    return out


def top_songs(df: pd.DataFrame, limit: int = 5) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["song_title", "artist_name", "total_earnings", "total_streams"])
    out = (
        df.groupby(["song_title", "artist_name"], sort=False)
        .agg(total_earnings=("converted_amount", "sum"), total_streams=("streams", "sum"))
        .reset_index()
        .sort_values("total_earnings", ascending=False, kind="mergesort")
    )
    return out.head(limit).reset_index(drop=True)


def top_artists(df: pd.DataFrame, limit: int = 10) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["artist_name", "total_earnings", "total_streams"])
    out = (
        df.groupby("artist_name", sort=False)
        .agg(total_earnings=("converted_amount", "sum"), total_streams=("streams", "sum"))
        .reset_index()
        .sort_values("total_earnings", ascending=False, kind="mergesort")
    )
    return out.head(limit).reset_index(drop=True)


def store_distribution(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["store", "earnings"])
    return df.groupby("store", sort=False)["converted_amount"].sum().reset_index(name="earnings")


def current_year_stats(df: pd.DataFrame, today: Optional[date] = None) -> Dict[str, Any]:
    year = (today or date.today()).year
    this_year = df[df["year"] == year] if not df.empty else df
    return {
        "year": year,
        "total_earnings": float(this_year["converted_amount"].sum()) if not this_year.empty else 0.0,
        "total_streams": int(this_year["streams"].sum()) if not this_year.empty else 0,
        "unique_songs": int(this_year["song_title"].nunique()) if not this_year.empty else 0,
        "unique_artists": int(this_year["artist_name"].nunique()) if not this_year.empty else 0,
    }


def recent_records(df: pd.DataFrame, limit: int = 5) -> pd.DataFrame:
    if df.empty:
        return df
    return df.sort_values("date", ascending=False, kind="mergesort", key=pd.to_datetime).head(limit)


def filter_options(df: pd.DataFrame) -> Dict[str, List[Any]]:
    def unique_sorted(col: str) -> List[Any]:
        if df.empty:
            return []
        values = [v for v in df[col].dropna().unique().tolist() if v not in ("", 0)]
        return sorted(values)

    return {
        "years": [int(y) for y in unique_sorted("year")],
        "artists": unique_sorted("artist_name"),
        "songs": unique_sorted("song_title"),
        "stores": unique_sorted("store"),
    }


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
def prepare_context(
    records: Iterable[RoyaltyRecord],
    filters: dict | RoyaltyFilters | None,
    base_currency: str,
    rates: Mapping[str, float],
) -> Dict[str, Any]:
    records = list(records)
    filt = filters if isinstance(filters, RoyaltyFilters) else normalize_filters(filters)
    royalties = records_to_frame(records, base_currency, rates)
    filtered = sort_frame(apply_filters(royalties, filt), filt)
    return {
        "records": records,
        "royalties": royalties,
        "filtered_royalties": filtered,
        "filters": filt,
        "base_currency": base_currency,
        "rates": dict(rates),
    }


def filter_and_sort(
    records: Iterable[RoyaltyRecord],
    filters: dict | RoyaltyFilters | None,
    base_currency: str,
    rates: Mapping[str, float],
) -> List[RoyaltyRecord]:
    ctx = prepare_context(records, filters, base_currency, rates)
    return frame_to_records(ctx["filtered_royalties"], ctx["records"])
