from __future__ import annotations

import logging
import math
import re
from typing import Optional
from urllib.parse import quote

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import ReportPayloadModel, ReportSettingsModel
from core.charts import build_snapshot_surface
from core.errors import WorkbookParseError
from core.export import ExportController, ExportOutcome
from core.ingest import parse_request_workbook
from core.metrics_overview import compute_report_payload
from core.report import ReportModel, build_report, build_report_from_payload
from core.settings import ReportSettings, normalize_settings


app = FastAPI(title="Request Report API", version="0.1.0")
logger = logging.getLogger(__name__)
export_controller = ExportController()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _settings_from_model(model: Optional[ReportSettingsModel]) -> ReportSettings:
    if model is None:
        return ReportSettings()
    return normalize_settings(model.model_dump())


def _report_from_model(model: ReportPayloadModel) -> tuple[ReportModel, ReportSettings]:
    settings = _settings_from_model(model.settings)
    return build_report(model.date_stats, model.department_stats, settings=settings), settings


def _json(data: object) -> JSONResponse:
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
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _download(outcome: ExportOutcome) -> Response:
    if outcome.status == "rejected":
        return JSONResponse(status_code=409, content={"error": outcome.message, "type": "ExportBusy"})
    if not outcome.ok or outcome.document is None:
        return JSONResponse(status_code=500, content={"error": outcome.message, "type": "ExportError"})
    document = outcome.document
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": _content_disposition(document.filename)},
    )


def _content_disposition(filename: str) -> str:
    """Quoted ASCII fallback plus the RFC 5987 UTF-8 form for non-Latin labels."""
    fallback = re.sub(r'[^A-Za-z0-9._-]', "_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@app.get("/health")
def health():
    return _json({"status": "ok", "export_busy": export_controller.busy})


@app.post("/report")
def report(payload: ReportPayloadModel):
    try:
        model, settings = _report_from_model(payload)
        return _json(compute_report_payload(model, settings))
    except Exception as exc:
        logger.exception("report failed")
        return _error(exc)


@app.post("/report/upload")
async def report_upload(file: UploadFile = File(...)):
    try:
        content = await file.read()
        raw = parse_request_workbook(content)
        return _json(compute_report_payload(build_report_from_payload(raw)))
    except WorkbookParseError as exc:
        logger.warning("upload %s could not be parsed: %s", file.filename, exc)
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("report_upload failed")
        return _error(exc)


@app.post("/export/workbook")
def export_workbook(payload: ReportPayloadModel):
    model, settings = _report_from_model(payload)
    return _download(export_controller.export_workbook(model, label=settings.report_label))


@app.post("/export/snapshot")
async def export_snapshot(payload: ReportPayloadModel):
    model, settings = _report_from_model(payload)
    outcome = await export_controller.export_snapshot(
        build_snapshot_surface(model),
        label=settings.report_label,
        page_size=settings.page_size,
    )
    return _download(outcome)
