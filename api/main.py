from __future__ import annotations

from dataclasses import asdict
from functools import lru_cache
import logging
import math
from typing import List, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import ClassifyRequestModel, ReportRequestModel, ThresholdBandModel, ThresholdSettingsModel
from pmreport.aggregate import aggregate, classify_projects
from pmreport.config import cors_origins
from pmreport.dashboard import compute_dashboard, threshold_payload
from pmreport.models import ThresholdBand
from pmreport.storage import InvalidFileTypeError, InvalidUploadError, WeekNotFoundError, WeekStore
from pmreport.thresholds import DEFAULT_VARIANCE_THRESHOLDS, ConfigurationError, normalize_thresholds


app = FastAPI(title="PM Report API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_store() -> WeekStore:
    return WeekStore()


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects and infinite bounds."""

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


def _error(exc: Exception, route: str) -> JSONResponse:
    if isinstance(exc, WeekNotFoundError):
        status_code = 404
    elif isinstance(exc, (InvalidUploadError, InvalidFileTypeError, ConfigurationError)):
        status_code = 400
    else:
        logger.exception("%s failed", route)
        status_code = 500
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _bands_from_models(models: Optional[List[ThresholdBandModel]], store: WeekStore) -> tuple[ThresholdBand, ...]:
    if models is None:
        return store.load_thresholds()
    return normalize_thresholds([m.model_dump() for m in models])


# ---------------- weeks ----------------
@app.get("/api/weeks")
def list_weeks(store: WeekStore = Depends(get_store)):
    try:
        return _json({"weeks": store.list_weeks()})
    except Exception as exc:
        return _error(exc, "list_weeks")


@app.post("/api/weeks/upload/timesheet")
async def upload_timesheet(file: Optional[UploadFile] = File(default=None), store: WeekStore = Depends(get_store)):
    if file is None:
        return JSONResponse(status_code=400, content={"error": "No file uploaded", "type": "InvalidUploadError"})
    try:
        content = await file.read()
        week_id, meta = store.save_timesheet(file.filename or "", content)
        return _json({"message": "Timesheet uploaded successfully", "week_id": week_id, "file": meta})
    except Exception as exc:
        return _error(exc, "upload_timesheet")


@app.post("/api/weeks/{week_id}/upload/cost-efficiency")
async def upload_cost_efficiency(
    week_id: str,
    file: Optional[UploadFile] = File(default=None),
    store: WeekStore = Depends(get_store),
):
    if file is None:
        return JSONResponse(status_code=400, content={"error": "No file uploaded", "type": "InvalidUploadError"})
    try:
        content = await file.read()
        meta = store.save_cost_efficiency(week_id, file.filename or "", content)
        return _json({"message": "Cost efficiency file uploaded successfully", "week_id": week_id, "file": meta})
    except Exception as exc:
        return _error(exc, "upload_cost_efficiency")


@app.get("/api/weeks/{week_id}")
def get_week(week_id: str, store: WeekStore = Depends(get_store)):
    try:
        return _json(store.get_week(week_id))
    except Exception as exc:
        return _error(exc, "get_week")


@app.delete("/api/weeks/{week_id}")
def delete_week(week_id: str, store: WeekStore = Depends(get_store)):
    try:
        store.delete_week(week_id)
        return _json({"message": "Week data deleted successfully"})
    except Exception as exc:
        return _error(exc, "delete_week")


@app.delete("/api/weeks/{week_id}/{file_type}")
def delete_week_file(week_id: str, file_type: str, store: WeekStore = Depends(get_store)):
    try:
        store.delete_file(week_id, file_type)
        return _json({"message": f"{file_type} deleted successfully"})
    except Exception as exc:
        return _error(exc, "delete_week_file")


@app.get("/api/weeks/{week_id}/data")
def week_data(week_id: str, store: WeekStore = Depends(get_store)):
    try:
        return _json(store.week_data(week_id))
    except Exception as exc:
        return _error(exc, "week_data")


@app.post("/api/weeks/{week_id}/report")
def week_report(week_id: str, request: Optional[ReportRequestModel] = None, store: WeekStore = Depends(get_store)):
    try:
        bands = _bands_from_models(request.thresholds if request else None, store)
        projects = store.projects_for_week(week_id)
        return _json(compute_dashboard(week_id, projects, bands))
    except Exception as exc:
        return _error(exc, "week_report")


@app.post("/api/weeks/{week_id}/export")
def export_week(week_id: str, request: Optional[ReportRequestModel] = None, store: WeekStore = Depends(get_store)):
    try:
        bands = _bands_from_models(request.thresholds if request else None, store)
        projects = store.projects_for_week(week_id) or []
        export_df = pd.DataFrame([asdict(p) for p in projects])
        if not export_df.empty:
            classified = pd.DataFrame(classify_projects(projects, bands))
            export_df["band"] = classified["band"]
            export_df["budget_status"] = classified["budget_status"]
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        filename = f"{week_id}-projects.csv"
        return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
    except Exception as exc:
        return _error(exc, "export_week")


# ---------------- settings ----------------
@app.get("/api/settings/thresholds")
def get_thresholds(store: WeekStore = Depends(get_store)):
    try:
        return _json({"thresholds": threshold_payload(store.load_thresholds()), "defaults": threshold_payload(DEFAULT_VARIANCE_THRESHOLDS)})
    except Exception as exc:
        return _error(exc, "get_thresholds")


@app.put("/api/settings/thresholds")
def save_thresholds(settings: ThresholdSettingsModel, store: WeekStore = Depends(get_store)):
    try:
        bands = store.save_thresholds([m.model_dump() for m in settings.thresholds])
        return _json({"thresholds": threshold_payload(bands)})
    except Exception as exc:
        return _error(exc, "save_thresholds")


@app.post("/api/settings/thresholds/reset")
def reset_thresholds(store: WeekStore = Depends(get_store)):
    try:
        return _json({"thresholds": threshold_payload(store.reset_thresholds())})
    except Exception as exc:
        return _error(exc, "reset_thresholds")


# ---------------- ad-hoc classification ----------------
@app.post("/api/classify")
def classify(request: ClassifyRequestModel, store: WeekStore = Depends(get_store)):
    try:
        bands = _bands_from_models(request.thresholds, store)
        projects = [p.model_dump() for p in request.projects]
        return _json(
            {
                "thresholds": threshold_payload(bands),
                "classifications": classify_projects(projects, bands),
                "report": asdict(aggregate(projects, bands)),
            }
        )
    except Exception as exc:
        return _error(exc, "classify")
