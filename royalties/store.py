from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from royalties.currency import convert, validate_rates
from royalties.exceptions import InvalidRecordError, InvalidSettingsError, RecordNotFoundError
from royalties.filters import RoyaltyFilters, normalize_filters, reset_filters, update_filters
from royalties.models import (
    DEFAULT_EXCHANGE_RATES,
    SAMPLE_ROYALTIES,
    SUPPORTED_CURRENCIES,
    RoyaltyDraft,
    RoyaltyRecord,
    record_from_dict,
)
from royalties.persistence import PersistenceStatus

log = logging.getLogger(__name__)


class StateStorage(Protocol):
    status: PersistenceStatus

    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, payload: Dict[str, Any]) -> bool: ...


@dataclass(frozen=True)
class Settings:
    base_currency: str = "USD"
    exchange_rates: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES))

    def to_dict(self) -> Dict[str, Any]:
        return {"base_currency": self.base_currency, "exchange_rates": dict(self.exchange_rates)}


def make_settings(base_currency: str, exchange_rates: Mapping[str, object]) -> Settings:
    if base_currency not in SUPPORTED_CURRENCIES:
        raise InvalidSettingsError(f"Unsupported base currency '{base_currency}'")
    return Settings(base_currency=base_currency, exchange_rates=validate_rates(exchange_rates))


@dataclass(frozen=True)
class RoyaltyState:
    records: Tuple[RoyaltyRecord, ...] = ()
    filters: RoyaltyFilters = field(default_factory=RoyaltyFilters)
    settings: Settings = field(default_factory=Settings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "filters": self.filters.to_dict(),
            "settings": self.settings.to_dict(),
        }


def state_from_dict(payload: Mapping[str, Any]) -> RoyaltyState:
    """Rebuild state from a saved blob; raises on any malformed part."""
    records = tuple(record_from_dict(r) for r in payload.get("records") or [])
    ids = [r.id for r in records]
    if len(ids) != len(set(ids)):
        raise InvalidRecordError("Saved data contains duplicate record ids")
    raw_settings = payload.get("settings") or {}
    settings = make_settings(
        str(raw_settings.get("base_currency") or "USD"),
        {**DEFAULT_EXCHANGE_RATES, **(raw_settings.get("exchange_rates") or {})},
    )
    return RoyaltyState(records=records, filters=normalize_filters(payload.get("filters")), settings=settings)


class RoyaltyStore:
    """Owns the record collection, filters and settings.

    All mutations go through the named methods below; each one replaces the
    immutable state and then saves it (best effort).
    """

    def __init__(self, storage: Optional[StateStorage] = None) -> None:
        self._storage = storage
        self._state = RoyaltyState()
        self._load()

    # ----- read side -----
    @property
    def state(self) -> RoyaltyState:
        return self._state

    @property
    def records(self) -> List[RoyaltyRecord]:
        return list(self._state.records)

    @property
    def filters(self) -> RoyaltyFilters:
        return self._state.filters

    @property
    def settings(self) -> Settings:
        return self._state.settings

    @property
    def persistence_status(self) -> PersistenceStatus:
        return self._storage.status if self._storage is not None else PersistenceStatus()

    def get_record(self, record_id: str) -> RoyaltyRecord:
        for r in self._state.records:
            if r.id == record_id:
                return r
        raise RecordNotFoundError(record_id)

    def convert(self, amount: float, from_currency: str, to_currency: Optional[str] = None) -> float:
        return convert(amount, from_currency, to_currency or self.settings.base_currency, self.settings.exchange_rates)

    # ----- mutations -----
    def load_sample_data(self) -> None:
        self._commit(replace(self._state, records=SAMPLE_ROYALTIES))

    def add_record(self, draft: RoyaltyDraft) -> RoyaltyRecord:
        record = draft.to_record()
        self._commit(replace(self._state, records=self._state.records + (record,)))
        return record

    def import_records(self, drafts: Iterable[RoyaltyDraft]) -> List[RoyaltyRecord]:
        created = [d.to_record() for d in drafts]
        if created:
            self._commit(replace(self._state, records=self._state.records + tuple(created)))
            log.info("Imported %d royalty records", len(created))
        return created

    def update_record(self, record: RoyaltyRecord) -> RoyaltyRecord:
        self.get_record(record.id)
        records = tuple(record if r.id == record.id else r for r in self._state.records)
        self._commit(replace(self._state, records=records))
        return record

    def delete_record(self, record_id: str) -> None:
        self.get_record(record_id)
        records = tuple(r for r in self._state.records if r.id != record_id)
        self._commit(replace(self._state, records=records))

    def set_filters(self, **changes: Any) -> RoyaltyFilters:
        filters = update_filters(self._state.filters, changes)
        self._commit(replace(self._state, filters=filters))
        return filters

    def reset_filters(self) -> RoyaltyFilters:
        filters = reset_filters()
        self._commit(replace(self._state, filters=filters))
        return filters

    def update_settings(
        self,
        base_currency: Optional[str] = None,
        exchange_rates: Optional[Mapping[str, object]] = None,
    ) -> Settings:
        current = self._state.settings
        settings = make_settings(
            base_currency or current.base_currency,
            exchange_rates if exchange_rates is not None else current.exchange_rates,
        )
        self._commit(replace(self._state, settings=settings))
        return settings

    def set_exchange_rates(self, rates: Mapping[str, object]) -> Settings:
        """Merge `rates` into the current table."""
        merged = {**self._state.settings.exchange_rates, **rates}
        return self.update_settings(exchange_rates=merged)

    # ----- persistence -----
    def _load(self) -> None:
        if self._storage is None:
            self._state = RoyaltyState(records=SAMPLE_ROYALTIES)
            return
        payload = self._storage.load()
        if payload is None:
            self._state = RoyaltyState(records=SAMPLE_ROYALTIES)
            return
        try:
            self._state = state_from_dict(payload)
        except Exception as e:
            log.warning("Error loading saved data, falling back to sample data: %s", e)
            self._storage.status.record_load_failure(f"Saved data was unreadable: {e}")
            self._state = RoyaltyState(records=SAMPLE_ROYALTIES)

    def _commit(self, state: RoyaltyState) -> None:
        self._state = state
        if self._storage is None:
            return
        try:
            self._storage.save(state.to_dict())
        except Exception as e:
            log.warning("Error saving data: %s", e)
            self._storage.status.ok = False
            self._storage.status.last_error = f"Could not save data: {e}"
