from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional

from core.metrics_department import EMPTY_CROSS_TAB, CrossTab, compute_cross_tab
from core.metrics_monthly import MonthlySeries, compute_monthly_series
from core.periods import resolve_latest_month
from core.records import normalize_date_records, normalize_department_records
from core.settings import ReportSettings


logger = logging.getLogger(__name__)

DATE_STATS_KEY = "date_stats"
DEPARTMENT_STATS_KEY = "department_stats"


@dataclass(frozen=True)
class Diagnostics:
    skipped_date_rows: int = 0
    skipped_department_rows: int = 0
    swapped_field_rows: int = 0
    failed: bool = False


@dataclass(frozen=True)
class ReportModel:
    latest_month: Optional[str] = None
    monthly_series: MonthlySeries = ()
    cross_tab: CrossTab = EMPTY_CROSS_TAB
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def is_empty(self) -> bool:
        return self.latest_month is None and not self.monthly_series and self.cross_tab.is_empty


EMPTY_REPORT = ReportModel()


def _build(raw_date_records: Optional[Iterable[Any]], raw_department_records: Optional[Iterable[Any]], settings: ReportSettings) -> ReportModel:
    dates = normalize_date_records(raw_date_records)
    departments = normalize_department_records(raw_department_records)

    latest_month = resolve_latest_month(dates.records)
    series = compute_monthly_series(dates.records, window=settings.window_months)
    cross_tab = compute_cross_tab(
        departments.records,
        latest_month,
        top_n=settings.top_n,
        palette=settings.status_colors,
    )
    return ReportModel(
        latest_month=latest_month,
        monthly_series=series,
        cross_tab=cross_tab,
        diagnostics=Diagnostics(
            skipped_date_rows=dates.skipped,
            skipped_department_rows=departments.skipped,
            swapped_field_rows=cross_tab.swapped_rows,
        ),
    )


def build_report(
    raw_date_records: Optional[Iterable[Any]],
    raw_department_records: Optional[Iterable[Any]],
    settings: Optional[ReportSettings] = None,
) -> ReportModel:
    """Run the whole aggregation; never raises, falls back to ``EMPTY_REPORT``."""
    try:
        model = _build(raw_date_records, raw_department_records, settings or ReportSettings())
    except Exception:
        logger.exception("report aggregation failed; returning empty report")
        return replace(EMPTY_REPORT, diagnostics=Diagnostics(failed=True))
    return model


def _records_at(payload: Mapping[str, Any], key: str) -> Sequence[Any]:
    value = payload.get(key)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value
    if value is not None:
        logger.warning("%s is not a sequence (%s); treating as empty", key, type(value).__name__)
    return ()


def build_report_from_payload(payload: Any, settings: Optional[ReportSettings] = None) -> ReportModel:
    if not isinstance(payload, Mapping):
        logger.warning("report payload is not a mapping (%s); returning empty report", type(payload).__name__)
        return EMPTY_REPORT
    return build_report(
        _records_at(payload, DATE_STATS_KEY),
        _records_at(payload, DEPARTMENT_STATS_KEY),
        settings=settings,
    )
