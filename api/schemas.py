from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RoyaltyFiltersModel(BaseModel):
    quarter: Optional[str] = None
    year: Optional[int] = None
    artist: Optional[str] = None
    song: Optional[str] = None
    store: Optional[str] = None
    sort_by: str = "date"
    sort_order: str = "desc"


class RoyaltyDraftModel(BaseModel):
    song_title: str
    artist_name: str
    store: str = ""
    quarter: str = "Q1"
    year: int
    streams: int = 0
    amount: float
    currency: str = "USD"
    date: dt.date
    territory: str = ""


class ImportRequest(BaseModel):
    csv_text: str
    filename: str = "upload.csv"


class ImportConfirmRequest(BaseModel):
    records: List[RoyaltyDraftModel] = Field(default_factory=list)


class SettingsModel(BaseModel):
    base_currency: Optional[str] = None
    exchange_rates: Optional[Dict[str, float]] = None
