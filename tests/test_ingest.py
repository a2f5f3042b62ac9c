from __future__ import annotations

from io import BytesIO

import pandas as pd
import pytest

from core.errors import WorkbookParseError
from core.ingest import parse_request_workbook
from core.report import build_report_from_payload


def workbook_bytes(df: pd.DataFrame) -> bytes:
    buffer = BytesIO()
    df.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture()
def request_log() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "번호": [1, 2, 3, 4, 5],
            "상태": ["종료", "요청", "종료", "협의", "종료"],
            "부서": ["IT", "IT", "HR", "HR", "IT"],
            "요청일시": ["2024-01-03 10:00", "2024-01-20 11:30", "2024-02-01 09:00", "not a date", "2024-02-11 14:00"],
        }
    )


def test_parses_monthly_and_department_stats(request_log):
    raw = parse_request_workbook(workbook_bytes(request_log))

    assert raw["date_stats"] == [
        {"month": "2024-01", "requests": 2, "closed": 1, "closure_rate": 50.0},
        {"month": "2024-02", "requests": 2, "closed": 2, "closure_rate": 100.0},
    ]
    assert {"department": "IT", "request_status": "종료", "request_date": "2024-02", "count": 1} in raw["department_stats"]
    assert sum(row["count"] for row in raw["department_stats"]) == 4


def test_parsed_payload_feeds_the_report(request_log):
    model = build_report_from_payload(parse_request_workbook(workbook_bytes(request_log)))

    assert model.latest_month == "2024-02"
    assert set(model.cross_tab.departments) == {"IT", "HR"}
    assert model.cross_tab.cell("HR", "종료") == 1


def test_positional_fallback_when_headers_are_unknown():
    columns = [f"c{i}" for i in range(10)]
    row = ["x"] * 10
    row[2], row[7], row[9] = "종료", "Ops", "2024-03-05"
    raw = parse_request_workbook(workbook_bytes(pd.DataFrame([row], columns=columns)))

    assert raw["date_stats"][0]["month"] == "2024-03"
    assert raw["department_stats"][0]["department"] == "Ops"


def test_unreadable_workbook_raises_parse_error():
    with pytest.raises(WorkbookParseError):
        parse_request_workbook(b"definitely not xlsx")


def test_missing_columns_raise_parse_error():
    with pytest.raises(WorkbookParseError):
        parse_request_workbook(workbook_bytes(pd.DataFrame({"a": [1]})))
