"""Workbook and snapshot exports for a built report.

Both exports go through ``ExportController``, which lets at most one export run
at a time and keeps a progress indicator up for exactly the duration of the run.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

import altair as alt
import pandas as pd
from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from core.errors import ExportBusy, ExportCancelled, ExportError, RasterizationError
from core.metrics_department import cross_tab_frame
from core.report import ReportModel


logger = logging.getLogger(__name__)

WORKBOOK_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"
MONTHLY_SHEET = "monthly"
DEPARTMENT_SHEET = "department"
PAGE_SIZES = {"A4": A4, "LETTER": letter}
PAGE_MARGIN = 36.0
RASTER_SCALE = 2.0


@dataclass(frozen=True)
class ExportDocument:
    filename: str
    content: bytes
    media_type: str


def round_half_up(value: float, ndigits: int = 2) -> float:
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def export_filename(label: str, ext: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{label}_{now.strftime('%Y%m%d_%H%M')}.{ext.lstrip('.')}"


# ---------- workbook ----------

def workbook_frames(report: ReportModel) -> Dict[str, pd.DataFrame]:
    monthly = pd.DataFrame(
        [
            {
                "date": p.month,
                "closed": p.closed,
                "totalRequests": p.requests,
                "closureRatePercent": round_half_up(p.closure_rate, 2),
            }
            for p in report.monthly_series
        ],
        columns=["date", "closed", "totalRequests", "closureRatePercent"],
    )
    return {MONTHLY_SHEET: monthly, DEPARTMENT_SHEET: cross_tab_frame(report.cross_tab)}


def _store_formulas_as_text(worksheet) -> None:
    # openpyxl treats any string starting with "=" as a formula
    for row in worksheet.iter_rows():
        for cell in row:
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"


def compose_workbook(report: ReportModel, *, label: str = "request_report", now: Optional[datetime] = None) -> ExportDocument:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, frame in workbook_frames(report).items():
            frame.to_excel(writer, sheet_name=sheet_name, index=sheet_name == DEPARTMENT_SHEET)
            _store_formulas_as_text(writer.sheets[sheet_name])
    return ExportDocument(
        filename=export_filename(label, "xlsx", now),
        content=buffer.getvalue(),
        media_type=WORKBOOK_MEDIA_TYPE,
    )


# ---------- snapshot ----------

def rasterize_surface(surface: alt.TopLevelMixin, scale: float = RASTER_SCALE) -> bytes:
    """Render an Altair chart to PNG bytes (vl-convert backend)."""
    buffer = BytesIO()
    try:
        surface.save(buffer, format="png", scale_factor=scale)
    except Exception as exc:
        raise RasterizationError(f"Could not rasterize chart: {exc}") from exc
    return buffer.getvalue()


def compose_pdf_page(png: bytes, page_size: str = "A4", margin: float = PAGE_MARGIN) -> bytes:
    """One landscape page with the image centered and scaled to fit, aspect ratio kept."""
    page_w, page_h = landscape(PAGE_SIZES.get(page_size.upper(), A4))
    image = ImageReader(BytesIO(png))
    img_w, img_h = image.getSize()
    if img_w <= 0 or img_h <= 0:
        raise RasterizationError("Rasterized image is empty.")

    scale = min((page_w - 2 * margin) / img_w, (page_h - 2 * margin) / img_h)
    draw_w, draw_h = img_w * scale, img_h * scale

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(page_w, page_h))
    pdf.drawImage(image, (page_w - draw_w) / 2, (page_h - draw_h) / 2, width=draw_w, height=draw_h)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


async def _await_or_cancel(task: "asyncio.Future[Any]", cancel_event: Optional[asyncio.Event]) -> Any:
    if cancel_event is None:
        return await task
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
    if task not in done:
        task.cancel()
        raise ExportCancelled()
    return task.result()


async def compose_snapshot(
    surface: alt.TopLevelMixin,
    *,
    label: str = "request_report",
    page_size: str = "A4",
    now: Optional[datetime] = None,
    cancel_event: Optional[asyncio.Event] = None,
    rasterize: Callable[[alt.TopLevelMixin], bytes] = rasterize_surface,
) -> ExportDocument:
    now = now or datetime.now()
    if cancel_event is not None and cancel_event.is_set():
        raise ExportCancelled()
    png = await _await_or_cancel(asyncio.ensure_future(asyncio.to_thread(rasterize, surface)), cancel_event)
    pdf = await _await_or_cancel(asyncio.ensure_future(asyncio.to_thread(compose_pdf_page, png, page_size)), cancel_event)
    return ExportDocument(filename=export_filename(label, "pdf", now), content=pdf, media_type=PDF_MEDIA_TYPE)


# ---------- files ----------

def save_document(document: ExportDocument, directory: Path) -> Path:
    """Write via a temp file in the target directory, renamed into place only once complete."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / document.filename
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{document.filename}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(document.content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


# ---------- progress + single-flight controller ----------

class ProgressIndicator(Protocol):
    def show(self, message: str) -> None: ...

    def hide(self) -> None: ...


class NullProgress:
    def show(self, message: str) -> None:
        pass

    def hide(self) -> None:
        pass


@contextmanager
def progress_scope(indicator: ProgressIndicator, message: str) -> Iterator[ProgressIndicator]:
    indicator.show(message)
    try:
        yield indicator
    finally:
        indicator.hide()


class ExportState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    COMPOSED = "composed"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True)
class ExportOutcome:
    status: str
    document: Optional[ExportDocument] = None
    path: Optional[Path] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in {"composed", "saved"}


class ExportController:
    """Single-flight export runner: Idle -> Rendering -> {Composed -> Saved, Failed} -> Idle."""

    def __init__(self, progress: Optional[ProgressIndicator] = None, output_dir: Optional[Path] = None) -> None:
        self._lock = threading.Lock()
        self._state = ExportState.IDLE
        self.progress: ProgressIndicator = progress or NullProgress()
        self.output_dir = Path(output_dir) if output_dir else None
        self.transitions: List[ExportState] = [ExportState.IDLE]

    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not ExportState.IDLE

    def _set_state(self, state: ExportState) -> None:
        with self._lock:
            self._state = state
            self.transitions.append(state)

    def _try_begin(self) -> bool:
        with self._lock:
            if self._state is not ExportState.IDLE:
                return False
            self._state = ExportState.RENDERING
            self.transitions.append(ExportState.RENDERING)
            return True

    @contextmanager
    def _rendering(self, message: str) -> Iterator[None]:
        if not self._try_begin():
            raise ExportBusy()
        try:
            with progress_scope(self.progress, message):
                yield
        except BaseException:
            self._set_state(ExportState.FAILED)
            raise
        finally:
            self._set_state(ExportState.IDLE)

    def _finalize(self, document: ExportDocument) -> ExportOutcome:
        self._set_state(ExportState.COMPOSED)
        if self.output_dir is None:
            return ExportOutcome(status="composed", document=document)
        path = save_document(document, self.output_dir)
        self._set_state(ExportState.SAVED)
        logger.info("saved export %s", path)
        return ExportOutcome(status="saved", document=document, path=path)

    def _outcome_for(self, kind: str, exc: Exception) -> ExportOutcome:
        if isinstance(exc, ExportBusy):
            logger.warning("%s export rejected: another export is in progress", kind)
            return ExportOutcome(status="rejected", message=str(exc))
        if isinstance(exc, ExportCancelled):
            logger.info("%s export cancelled", kind)
            return ExportOutcome(status="cancelled", message=str(exc))
        if isinstance(exc, ExportError):
            logger.error("%s export failed: %s", kind, exc)
        else:
            logger.exception("%s export failed", kind)
        return ExportOutcome(status="failed", message=f"{kind.capitalize()} export failed: {exc}")

    def export_workbook(self, report: ReportModel, *, label: str = "request_report", now: Optional[datetime] = None) -> ExportOutcome:
        try:
            with self._rendering("Preparing workbook..."):
                return self._finalize(compose_workbook(report, label=label, now=now))
        except Exception as exc:
            return self._outcome_for("workbook", exc)

    async def export_snapshot(
        self,
        surface: Optional[alt.TopLevelMixin],
        *,
        label: str = "request_report",
        page_size: str = "A4",
        now: Optional[datetime] = None,
        cancel_event: Optional[asyncio.Event] = None,
        rasterize: Callable[[alt.TopLevelMixin], bytes] = rasterize_surface,
    ) -> ExportOutcome:
        try:
            with self._rendering("Rendering snapshot..."):
                if surface is None:
                    raise ExportError("Nothing to export: the report is empty.")
                document = await compose_snapshot(
                    surface,
                    label=label,
                    page_size=page_size,
                    now=now,
                    cancel_event=cancel_event,
                    rasterize=rasterize,
                )
                return self._finalize(document)
        except Exception as exc:
            return self._outcome_for("snapshot", exc)
