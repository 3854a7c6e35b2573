from __future__ import annotations

import csv
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from royalties.models import RECORD_FIELDS, RoyaltyRecord

EXPORT_PREFIX = "royalties_export"


def export_filename(today: Optional[date] = None) -> str:
    return f"{EXPORT_PREFIX}_{(today or date.today()).isoformat()}.csv"


def export_frame(records: Iterable[RoyaltyRecord]) -> pd.DataFrame:
    rows = [
        {
            "song_title": r.song_title,
            "artist_name": r.artist_name,
            "store": r.store,
            "quarter": r.quarter,
            "year": int(r.year),
            "streams": int(r.streams),
            "amount": float(r.amount),
            "currency": r.currency,
            "date": r.date.isoformat(),
            "territory": r.territory or "",
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=list(RECORD_FIELDS))
    return df.rename(columns=RECORD_FIELDS)


def export_csv(records: Iterable[RoyaltyRecord]) -> str:
    """Header row unquoted, text fields double-quoted, year/streams/amount bare."""
    df = export_frame(records)
    header = ",".join(df.columns)
    if df.empty:
        return header
    body = df.to_csv(index=False, header=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    return header + "\n" + body.rstrip("\n")
