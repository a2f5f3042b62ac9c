"""Request-log workbook -> the ``date_stats`` / ``department_stats`` payload.

This is the upstream side of the report: it only produces the raw mapping that
``core.report.build_report_from_payload`` consumes and holds no reporting logic.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from core.errors import WorkbookParseError


CLOSED_STATUS = "종료"

STATUS_HEADERS = ("상태", "status", "request_status")
DEPARTMENT_HEADERS = ("부서", "department", "dept")
REQUEST_DATE_HEADERS = ("요청일시", "request_date", "requested_at", "date")

STATUS_COL_FALLBACK = 2
DEPARTMENT_COL_FALLBACK = 7
REQUEST_DATE_COL_FALLBACK = 9

Source = Union[str, Path, bytes, BytesIO]


def find_column(df: pd.DataFrame, candidates: Iterable[str], fallback: int) -> Optional[str]:
    lowered = {str(c).strip().lower(): c for c in df.columns}
    for name in candidates:
        hit = lowered.get(name.lower())
        if hit is not None:
            return hit
    if fallback < len(df.columns):
        return df.columns[fallback]
    return None


def _read_first_sheet(source: Source) -> pd.DataFrame:
    if isinstance(source, bytes):
        source = BytesIO(source)
    try:
        return pd.read_excel(source, sheet_name=0, engine="openpyxl")
    except Exception as exc:
        raise WorkbookParseError(f"Could not read workbook: {exc}") from exc


def parse_request_workbook(source: Source) -> Dict[str, List[Dict[str, Any]]]:
    raw = _read_first_sheet(source)

    status_col = find_column(raw, STATUS_HEADERS, STATUS_COL_FALLBACK)
    dept_col = find_column(raw, DEPARTMENT_HEADERS, DEPARTMENT_COL_FALLBACK)
    date_col = find_column(raw, REQUEST_DATE_HEADERS, REQUEST_DATE_COL_FALLBACK)
    if status_col is None or dept_col is None or date_col is None:
        raise WorkbookParseError(
            f"Workbook needs status, department and request date columns; found {list(raw.columns)}"
        )

    df = pd.DataFrame(
        {
            "status": raw[status_col].astype("string").str.strip(),
            "department": raw[dept_col].astype("string").str.strip(),
            "requested_at": pd.to_datetime(raw[date_col], errors="coerce"),
        }
    )
    df = df.dropna(subset=["requested_at"])
    if df.empty:
        return {"date_stats": [], "department_stats": []}

    df["month"] = df["requested_at"].dt.strftime("%Y-%m")
    df["is_closed"] = (df["status"] == CLOSED_STATUS).fillna(False).astype(int)

    monthly = (
        df.groupby("month")
        .agg(requests=("month", "size"), closed=("is_closed", "sum"))
        .reset_index()
        .sort_values("month")
    )
    monthly["closure_rate"] = (monthly["closed"] / monthly["requests"] * 100).where(monthly["requests"] > 0, 0.0)

    dept = (
        df.dropna(subset=["status", "department"])
        .groupby(["department", "status", "month"], sort=False)
        .size()
        .reset_index(name="count")
        .rename(columns={"status": "request_status", "month": "request_date"})
    )

    monthly = monthly.astype({"requests": int, "closed": int, "closure_rate": float})
    dept = dept.astype({"department": str, "request_status": str, "request_date": str, "count": int})
    return {
        "date_stats": monthly[["month", "requests", "closed", "closure_rate"]].to_dict(orient="records"),
        "department_stats": dept[["department", "request_status", "request_date", "count"]].to_dict(orient="records"),
    }
