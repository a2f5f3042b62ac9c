"""Typed records built once from the loosely-typed rows of the upstream parser.

Rows arrive as arbitrary mappings: key casing varies, numbers may be strings and
fields may be missing entirely. Everything downstream of this module works on
``DateRecord`` / ``DepartmentRecord`` values only.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import pandas as pd


logger = logging.getLogger(__name__)

MONTH_KEYS = ("month", "date", "period")
REQUESTS_KEYS = ("requests", "request_count", "total")
CLOSED_KEYS = ("closed", "closed_count", "completed")
DEPARTMENT_KEYS = ("department", "dept")
STATUS_KEYS = ("status", "request_status")
RECORD_DATE_KEYS = ("record_date", "recorddate", "request_date", "date")
COUNT_KEYS = ("count", "value")


@dataclass(frozen=True)
class DateRecord:
    month: str
    requests: int
    closed: int

    @property
    def closure_rate(self) -> float:
        return closure_rate(self.requests, self.closed)


@dataclass(frozen=True)
class DepartmentRecord:
    department: str
    status: str
    record_date: str
    count: int


@dataclass(frozen=True)
class NormalizedRecords:
    records: Tuple[Any, ...]
    skipped: int = 0


def closure_rate(requests: int, closed: int) -> float:
    if requests <= 0:
        return 0.0
    return max(0.0, min(100.0, closed / requests * 100))


def _lookup(row: Mapping[Any, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in row.items():
        name = str(key).strip().lower()
        if name not in out:
            out[name] = value
    return out


def _first(fields: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = fields.get(key)
        if value is not None:
            return value
    return None


def as_text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def as_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return max(0, int(number))


def _date_record(row: Any) -> Optional[DateRecord]:
    if not isinstance(row, Mapping):
        return None
    fields = _lookup(row)
    month = as_text(_first(fields, MONTH_KEYS))
    if not month:
        return None
    return DateRecord(
        month=month,
        requests=as_count(_first(fields, REQUESTS_KEYS)),
        closed=as_count(_first(fields, CLOSED_KEYS)),
    )


def _department_record(row: Any) -> Optional[DepartmentRecord]:
    if not isinstance(row, Mapping):
        return None
    fields = _lookup(row)
    department = as_text(_first(fields, DEPARTMENT_KEYS))
    status = as_text(_first(fields, STATUS_KEYS))
    if not department or not status:
        return None
    return DepartmentRecord(
        department=department,
        status=status,
        record_date=as_text(_first(fields, RECORD_DATE_KEYS)),
        count=as_count(_first(fields, COUNT_KEYS)),
    )


def _normalize(rows: Optional[Iterable[Any]], build, kind: str) -> NormalizedRecords:
    records = []
    skipped = 0
    for idx, row in enumerate(rows or ()):
        record = build(row)
        if record is None:
            skipped += 1
            logger.debug("skipped %s row %d: missing identifying fields", kind, idx)
            continue
        records.append(record)
    if skipped:
        logger.info("skipped %d malformed %s rows", skipped, kind)
    return NormalizedRecords(records=tuple(records), skipped=skipped)


def normalize_date_records(rows: Optional[Iterable[Any]]) -> NormalizedRecords:
    return _normalize(rows, _date_record, "date")


def normalize_department_records(rows: Optional[Iterable[Any]]) -> NormalizedRecords:
    return _normalize(rows, _department_record, "department")
