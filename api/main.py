from __future__ import annotations

import logging
import math
from functools import lru_cache

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    ImportConfirmRequest,
    ImportRequest,
    RoyaltyDraftModel,
    RoyaltyFiltersModel,
    SettingsModel,
)
from royalties.config import configure_logging, get_settings
from royalties.csv_export import export_csv, export_filename
from royalties.csv_import import TEMPLATE_CSV, TEMPLATE_FILENAME, parse_csv
from royalties.data import filter_options, prepare_context
from royalties.exceptions import (
    EmptyInputError,
    InvalidRecordError,
    InvalidSettingsError,
    MissingExchangeRateError,
    RecordNotFoundError,
    RoyaltyError,
)
from royalties.metrics_dashboard import compute_dashboard
from royalties.metrics_reports import compute_reports
from royalties.metrics_royalties import compute_royalties_table
from royalties.models import draft_from_dict
from royalties.persistence import JsonFileStorage
from royalties.store import RoyaltyStore

configure_logging()
app = FastAPI(title="Royalty Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = {
    RecordNotFoundError: 404,
    EmptyInputError: 400,
    InvalidRecordError: 422,
    InvalidSettingsError: 422,
    MissingExchangeRateError: 422,
}


@lru_cache(maxsize=1)
def get_store() -> RoyaltyStore:
    return RoyaltyStore(JsonFileStorage(get_settings().state_path))


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, name: str) -> JSONResponse:
    if isinstance(exc, RoyaltyError):
        status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 400)
        return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _context(store: RoyaltyStore):
    settings = store.settings
    return prepare_context(store.records, store.filters, settings.base_currency, settings.exchange_rates)


@app.get("/health")
def health(store: RoyaltyStore = Depends(get_store)):
    status = store.persistence_status
    return _json({"status": "ok" if status.healthy else "degraded", "persistence": status.to_dict()})


@app.get("/meta/filter-options")
def meta_filter_options(store: RoyaltyStore = Depends(get_store)):
    try:
        ctx = _context(store)
        return _json(filter_options(ctx["royalties"]))
    except Exception as exc:
        return _error(exc, "meta_filter_options")


@app.get("/dashboard")
def dashboard(store: RoyaltyStore = Depends(get_store)):
    try:
        return _json(compute_dashboard(_context(store)))
    except Exception as exc:
        return _error(exc, "dashboard")


@app.get("/reports")
def reports(store: RoyaltyStore = Depends(get_store)):
    try:
        return _json(compute_reports(_context(store)))
    except Exception as exc:
        return _error(exc, "reports")


@app.post("/royalties")
def royalties_table(filters: RoyaltyFiltersModel, store: RoyaltyStore = Depends(get_store)):
    try:
        store.set_filters(**filters.model_dump())
        return _json(compute_royalties_table(_context(store)))
    except Exception as exc:
        return _error(exc, "royalties_table")


@app.get("/records")
def list_records(store: RoyaltyStore = Depends(get_store)):
    return _json({"records": [r.to_dict() for r in store.records]})


@app.post("/records")
def create_record(body: RoyaltyDraftModel, store: RoyaltyStore = Depends(get_store)):
    try:
        record = store.add_record(draft_from_dict(body.model_dump()))
        return _json(record.to_dict(), status_code=201)
    except Exception as exc:
        return _error(exc, "create_record")


@app.put("/records/{record_id}")
def update_record(record_id: str, body: RoyaltyDraftModel, store: RoyaltyStore = Depends(get_store)):
    try:
        store.get_record(record_id)
        record = store.update_record(draft_from_dict(body.model_dump()).to_record(record_id))
        return _json(record.to_dict())
    except Exception as exc:
        return _error(exc, "update_record")


@app.delete("/records/{record_id}")
def delete_record(record_id: str, store: RoyaltyStore = Depends(get_store)):
    try:
        store.delete_record(record_id)
        return Response(status_code=204)
    except Exception as exc:
        return _error(exc, "delete_record")


@app.post("/import/preview")
def import_preview(body: ImportRequest):
    if not body.filename.lower().endswith(".csv"):
        return JSONResponse(status_code=400, content={"error": "Please select a CSV file", "type": "InvalidFileType"})
    try:
        result = parse_csv(body.csv_text)
    except EmptyInputError as exc:
        return _error(exc, "import_preview")
    except Exception as exc:
        logger.exception("import_preview failed")
        return JSONResponse(
            status_code=400,
            content={"error": "Failed to process file. Please check the file format.", "type": type(exc).__name__},
        )
    return _json({"success": result.success, "errors": result.errors, "imported": [d.to_dict() for d in result.imported]})


@app.post("/import/confirm")
def import_confirm(body: ImportConfirmRequest, store: RoyaltyStore = Depends(get_store)):
    try:
        drafts = [draft_from_dict(r.model_dump()) for r in body.records]
        created = store.import_records(drafts)
        return _json({"imported": len(created), "records": [r.to_dict() for r in created]}, status_code=201)
    except Exception as exc:
        return _error(exc, "import_confirm")


@app.get("/export")
def export(store: RoyaltyStore = Depends(get_store)):
    if not store.records:
        return JSONResponse(status_code=404, content={"error": "No data to export", "type": "EmptyExport"})
    filename = export_filename()
    return Response(
        content=export_csv(store.records).encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.get("/template")
def template():
    return Response(
        content=TEMPLATE_CSV.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={TEMPLATE_FILENAME}"},
    )


@app.get("/settings")
def get_app_settings(store: RoyaltyStore = Depends(get_store)):
    return _json(store.settings.to_dict())


@app.put("/settings")
def put_app_settings(body: SettingsModel, store: RoyaltyStore = Depends(get_store)):
    try:
        settings = store.update_settings(base_currency=body.base_currency, exchange_rates=body.exchange_rates)
        return _json(settings.to_dict())
    except Exception as exc:
        return _error(exc, "put_settings")


@app.post("/sample-data")
def sample_data(store: RoyaltyStore = Depends(get_store)):
    store.load_sample_data()
    return _json({"records": len(store.records)})
