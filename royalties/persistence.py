"""
Best-effort local persistence for the record store.

The whole state is one JSON blob under one storage key. Reads happen once at
startup, writes after every mutation. Failures never propagate: they are logged
and recorded on `PersistenceStatus` so the UI can show that data is not being
saved. A failed load is kept in `load_error` for the rest of the session; a later
successful save does not clear it, and the unreadable file is moved aside before
it is overwritten.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)


@dataclass
class PersistenceStatus:
    ok: bool = True
    last_error: Optional[str] = None
    last_saved_at: Optional[str] = None
    loaded_from_storage: bool = False
    load_error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.ok and self.load_error is None

    def record_load_failure(self, message: str) -> None:
        self.ok = False
        self.loaded_from_storage = False
        self.load_error = message
        self.last_error = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "last_error": self.last_error,
            "last_saved_at": self.last_saved_at,
            "loaded_from_storage": self.loaded_from_storage,
            "load_error": self.load_error,
        }


class JsonFileStorage:
    """Store the state blob as `<data_dir>/<key>.json`, replaced atomically on save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.status = PersistenceStatus()
        self._set_aside = False

    @property
    def unreadable_path(self) -> Path:
        return self.path.with_name(f"{self.path.stem}.unreadable{self.path.suffix}")

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the saved blob, or None when nothing usable is stored."""
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except (OSError, ValueError) as e:
            log.warning("Error loading saved data from %s: %s", self.path, e)
            self.status.record_load_failure(f"Could not read saved data: {e}")
            return None
        if not isinstance(payload, dict):
            log.warning("Ignoring saved data in %s: expected an object", self.path)
            self.status.record_load_failure("Saved data is not a JSON object")
            return None
        self.status.loaded_from_storage = True
        return payload

    def save(self, payload: Dict[str, Any]) -> bool:
        """Write the blob; returns False (and records why) instead of raising."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._set_aside_unreadable()
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.stem}-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(payload, fp, indent=2, default=str)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            log.warning("Error saving data to %s: %s", self.path, e)
            self.status.ok = False
            self.status.last_error = f"Could not save data: {e}"
            return False
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
        self.status.ok = True
        self.status.last_error = None
        self.status.last_saved_at = datetime.now(timezone.utc).isoformat()
        return True

    def _set_aside_unreadable(self) -> None:
        if self._set_aside or self.status.load_error is None or not self.path.exists():
            return
        os.replace(self.path, self.unreadable_path)
        self._set_aside = True
        log.warning("Moved unreadable saved data to %s", self.unreadable_path)


class MemoryStorage:
    """Keeps the blob in memory; used when no file storage is wanted."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None) -> None:
        self.payload = payload
        self.status = PersistenceStatus()

    def load(self) -> Optional[Dict[str, Any]]:
        if self.payload is not None:
            self.status.loaded_from_storage = True
        return self.payload

    def save(self, payload: Dict[str, Any]) -> bool:
        self.payload = json.loads(json.dumps(payload, default=str))
        self.status.ok = True
        self.status.last_saved_at = datetime.now(timezone.utc).isoformat()
        return True
