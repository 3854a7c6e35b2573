"""CSV statement import.

Distributor statements name their columns inconsistently, so each record field
is matched against a list of header aliases instead of a fixed schema. Rows are
parsed independently: a bad row is reported and skipped, it never aborts the
batch. Only a file with no content at all raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from royalties.exceptions import EmptyInputError
from royalties.models import RECORD_FIELDS, RoyaltyDraft

logger = logging.getLogger(__name__)

COLUMN_ALIASES: Dict[str, List[str]] = {
    "song_title": ["song title", "track title", "song", "title", "track name"],
    "artist_name": ["artist name", "artist", "primary artist", "main artist"],
    "store": ["store", "platform", "service", "dsp", "retailer"],
    "quarter": ["quarter", "reporting period", "period"],
    "year": ["year", "reporting year"],
    "streams": ["streams", "quantity", "units", "plays", "stream count"],
    "amount": ["amount", "earnings", "revenue", "royalty", "net revenue"],
    "currency": ["currency", "currency code"],
    "date": ["date", "reporting date", "period end", "statement date"],
    "territory": ["territory", "country", "region", "market"],
}

UNKNOWN_SONG = "Unknown Song"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_STORE = "Unknown Store"
DEFAULT_QUARTER = "Q1"
DEFAULT_CURRENCY = "USD"
MISSING_DATA_MESSAGE = "Missing required data (song, artist, or amount)"

TEMPLATE_FILENAME = "royalties_template.csv"
TEMPLATE_CSV = (
    ",".join(RECORD_FIELDS.values())
    + "\n"
    + '"Summer Nights","The Melody Makers","Spotify","Q1",2024,125000,850.50,"USD","2024-01-15","United States"\n'
    + '"Electric Dreams","Neon Pulse","Apple Music","Q1",2024,89000,712.30,"EUR","2024-02-20","Germany"'
)

_QUARTER_RE = re.compile(r"Q[1-4]", re.IGNORECASE)
_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass
class ImportResult:
    success: int = 0
    errors: List[str] = field(default_factory=list)
    imported: List[RoyaltyDraft] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes; `""` inside quotes is a literal quote."""
    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    values.append("".join(current).strip())
    return values


def _strip_quotes(value: str) -> str:
    return value.strip().strip('"').strip()


def resolve_header_map(headers: List[str], aliases: Optional[Dict[str, List[str]]] = None) -> Dict[str, int]:
    """Map each record field to the first header column containing one of its aliases."""
    aliases = aliases or COLUMN_ALIASES
    lowered = [h.lower() for h in headers]
    header_map: Dict[str, int] = {}
    for field_name, options in aliases.items():
        for idx, header in enumerate(lowered):
            if any(option.lower() in header for option in options):
                header_map[field_name] = idx
                break
    return header_map


def _get_value(values: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(values):
        return ""
    return _strip_quotes(values[index])


def parse_quarter(value: str) -> Optional[str]:
    if not value:
        return None
    match = _QUARTER_RE.search(value)
    return match.group(0).upper() if match else None


def parse_leading_int(value: str) -> Optional[int]:
    match = _INT_RE.match(value or "")
    return int(match.group(1)) if match else None


def parse_leading_float(value: str) -> Optional[float]:
    match = _FLOAT_RE.match(value or "")
    return float(match.group(1)) if match else None


def parse_date(value: str) -> Optional[date]:
    if not value:
        return None
    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC")
    return parsed.date()


def build_draft(values: List[str], header_map: Dict[str, int], today: date) -> Optional[RoyaltyDraft]:
    """Apply per-field defaults; returns None when song, artist or a positive amount is missing."""
    song_title = _get_value(values, header_map.get("song_title")) or UNKNOWN_SONG
    artist_name = _get_value(values, header_map.get("artist_name")) or UNKNOWN_ARTIST
    store = _get_value(values, header_map.get("store")) or UNKNOWN_STORE
    quarter = parse_quarter(_get_value(values, header_map.get("quarter"))) or DEFAULT_QUARTER
    year = parse_leading_int(_get_value(values, header_map.get("year"))) or today.year
    streams = parse_leading_int(_get_value(values, header_map.get("streams"))) or 0
    amount = parse_leading_float(_get_value(values, header_map.get("amount"))) or 0.0
    currency = (_get_value(values, header_map.get("currency")) or DEFAULT_CURRENCY).upper()
    record_date = parse_date(_get_value(values, header_map.get("date"))) or today
    territory = _get_value(values, header_map.get("territory"))

    if song_title == UNKNOWN_SONG or artist_name == UNKNOWN_ARTIST or amount <= 0:
        return None

    return RoyaltyDraft(
        song_title=song_title,
        artist_name=artist_name,
        store=store,
        quarter=quarter,
        year=year,
        streams=streams,
        amount=amount,
        currency=currency,
        date=record_date,
        territory=territory,
    )


def parse_csv(csv_text: str, *, today: Optional[date] = None) -> ImportResult:
    today = today or date.today()
    lines = [line for line in csv_text.split("\n") if line.strip()]
    if not lines:
        raise EmptyInputError()

    headers = [_strip_quotes(h) for h in split_csv_line(lines[0])]
    header_map = resolve_header_map(headers)
    result = ImportResult()

    for i in range(1, len(lines)):
        try:
            values = split_csv_line(lines[i])
            if len(values) < 2:
                continue
            draft = build_draft(values, header_map, today)
            if draft is None:
                result.errors.append(f"Row {i + 1}: {MISSING_DATA_MESSAGE}")
                continue
            result.imported.append(draft)
            result.success += 1
        except Exception as exc:
            result.errors.append(f"Row {i + 1}: {exc}")

    logger.info(
        "Parsed CSV: %d rows accepted, %d rejected, columns mapped=%s",
        result.success,
        len(result.errors),
        sorted(header_map),
    )
    return result
