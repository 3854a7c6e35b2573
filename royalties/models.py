from __future__ import annotations

import math
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Any, Dict, Tuple

from royalties.exceptions import InvalidRecordError

QUARTERS: Tuple[str, ...] = ("Q1", "Q2", "Q3", "Q4")
SUPPORTED_CURRENCIES: Tuple[str, ...] = ("USD", "EUR", "GBP", "CAD", "AUD", "JPY")
ANCHOR_CURRENCY = "USD"
DEFAULT_EXCHANGE_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "CAD": 1.25,
    "AUD": 1.35,
    "JPY": 110.0,
}
STORES: Tuple[str, ...] = (
    "Spotify",
    "Apple Music",
    "YouTube Music",
    "Amazon Music",
    "Deezer",
    "Tidal",
    "Pandora",
)

# Record field name -> CSV header, in template/export order.
RECORD_FIELDS: Dict[str, str] = {
    "song_title": "Song Title",
    "artist_name": "Artist Name",
    "store": "Store",
    "quarter": "Quarter",
    "year": "Year",
    "streams": "Streams",
    "amount": "Amount",
    "currency": "Currency",
    "date": "Date",
    "territory": "Territory",
}


@dataclass(frozen=True)
class RoyaltyDraft:
    """One royalty earning event that has not been given an id yet."""

    song_title: str
    artist_name: str
    store: str
    quarter: str
    year: int
    streams: int
    amount: float
    currency: str
    date: date
    territory: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.song_title, str) or not self.song_title.strip():
            raise InvalidRecordError("Song title is required")
        if not isinstance(self.artist_name, str) or not self.artist_name.strip():
            raise InvalidRecordError("Artist name is required")
        if not isinstance(self.store, str):
            raise InvalidRecordError("Store must be text")
        if self.quarter not in QUARTERS:
            raise InvalidRecordError(f"Invalid quarter '{self.quarter}'")
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise InvalidRecordError(f"Invalid year '{self.year}'")
        if isinstance(self.streams, bool) or not isinstance(self.streams, int) or self.streams < 0:
            raise InvalidRecordError(f"Streams must be a non-negative integer, got '{self.streams}'")
        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise InvalidRecordError(f"Invalid amount '{self.amount}'")
        if not math.isfinite(self.amount) or self.amount < 0:
            raise InvalidRecordError(f"Amount must be a non-negative number, got '{self.amount}'")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise InvalidRecordError(f"Unsupported currency '{self.currency}'")
        if not isinstance(self.date, date):
            raise InvalidRecordError(f"Invalid date '{self.date}'")
        if self.territory is None:
            object.__setattr__(self, "territory", "")
        object.__setattr__(self, "amount", float(self.amount))

    def to_record(self, record_id: str | None = None) -> "RoyaltyRecord":
        values = {f.name: getattr(self, f.name) for f in fields(RoyaltyDraft)}
        return RoyaltyRecord(**values, id=record_id or new_record_id())

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["date"] = self.date.isoformat()
        return out


@dataclass(frozen=True)
class RoyaltyRecord(RoyaltyDraft):
    id: str = field(default_factory=lambda: new_record_id())

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.id, str) or not self.id:
            raise InvalidRecordError("Record id is required")


def new_record_id() -> str:
    return str(uuid.uuid4())


def _coerce_date(value: object) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise InvalidRecordError(f"Invalid date '{value}'") from exc


def draft_from_dict(raw: Dict[str, Any]) -> RoyaltyDraft:
    """Build a draft from a JSON-style mapping (persisted blob, API body)."""
    try:
        return RoyaltyDraft(
            song_title=str(raw.get("song_title", "")).strip(),
            artist_name=str(raw.get("artist_name", "")).strip(),
            store=str(raw.get("store") or "").strip(),
            quarter=str(raw.get("quarter", "")),
            year=int(raw.get("year")),
            streams=int(raw.get("streams") or 0),
            amount=float(raw.get("amount")),
            currency=str(raw.get("currency", "")),
            date=_coerce_date(raw.get("date")),
            territory=str(raw.get("territory") or ""),
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidRecordError):
            raise
        raise InvalidRecordError(f"Invalid royalty data: {exc}") from exc


def record_from_dict(raw: Dict[str, Any]) -> RoyaltyRecord:
    draft = draft_from_dict(raw)
    record_id = raw.get("id")
    if not record_id:
        raise InvalidRecordError("Record id is required")
    return draft.to_record(str(record_id))


SAMPLE_ROYALTIES: Tuple[RoyaltyRecord, ...] = (
    RoyaltyRecord(
        id="1",
        song_title="Summer Nights",
        artist_name="The Melody Makers",
        store="Spotify",
        quarter="Q1",
        year=2024,
        streams=125000,
        amount=850.50,
        currency="USD",
        date=date(2024, 1, 15),
        territory="United States",
    ),
    RoyaltyRecord(
        id="2",
        song_title="Electric Dreams",
        artist_name="Neon Pulse",
        store="Apple Music",
        quarter="Q1",
        year=2024,
        streams=89000,
        amount=712.30,
        currency="EUR",
        date=date(2024, 2, 20),
        territory="Germany",
    ),
    RoyaltyRecord(
        id="3",
        song_title="Midnight Jazz",
        artist_name="Blue Note Collective",
        store="YouTube Music",
        quarter="Q2",
        year=2024,
        streams=67500,
        amount=445.80,
        currency="GBP",
        date=date(2024, 4, 10),
        territory="United Kingdom",
    ),
    RoyaltyRecord(
        id="4",
        song_title="Summer Nights",
        artist_name="The Melody Makers",
        store="Amazon Music",
        quarter="Q2",
        year=2024,
        streams=43200,
        amount=298.75,
        currency="CAD",
        date=date(2024, 5, 18),
        territory="Canada",
    ),
    RoyaltyRecord(
        id="5",
        song_title="Ocean Waves",
        artist_name="Coastal Sounds",
        store="Spotify",
        quarter="Q3",
        year=2024,
        streams=156000,
        amount=1120.45,
        currency="USD",
        date=date(2024, 7, 22),
        territory="United States",
    ),
)
