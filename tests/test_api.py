from __future__ import annotations

from io import BytesIO
from urllib.parse import quote

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from api import main
from core.export import ExportController, ExportDocument, ExportOutcome


@pytest.fixture()
def client():
    return TestClient(main.app)


@pytest.fixture()
def payload(date_rows, department_rows):
    return {"date_stats": date_rows, "department_stats": department_rows}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "export_busy": False}


def test_report_endpoint(client, payload):
    response = client.post("/report", json=payload)

    body = response.json()
    assert response.status_code == 200
    assert body["latest_month"] == "2024-01"
    assert [p["month"] for p in body["monthly"]] == ["2023-12", "2024-01"]
    assert body["departments"]["labels"] == ["Finance", "IT"]
    assert set(body["charts"]) == {"monthly_volume", "closure_rate", "department_status", "status_distribution"}


def test_report_endpoint_with_empty_input(client):
    response = client.post("/report", json={})

    assert response.status_code == 200
    assert response.json()["empty"] is True


def test_report_upload(client):
    df = pd.DataFrame({"상태": ["종료", "요청"], "부서": ["IT", "HR"], "요청일시": ["2024-05-01", "2024-05-02"]})
    buffer = BytesIO()
    df.to_excel(buffer, index=False, engine="openpyxl")

    response = client.post(
        "/report/upload",
        files={"file": ("log.xlsx", buffer.getvalue(), "application/octet-stream")},
    )

    assert response.status_code == 200
    assert response.json()["latest_month"] == "2024-05"


def test_report_upload_rejects_garbage(client):
    response = client.post("/report/upload", files={"file": ("log.xlsx", b"nope", "application/octet-stream")})

    assert response.status_code == 400
    assert response.json()["type"] == "WorkbookParseError"


def test_workbook_download(client, payload):
    payload["settings"] = {"report_label": "monthly_requests"}

    response = client.post("/export/workbook", json=payload)

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="monthly_requests_')
    assert disposition.endswith(".xlsx")
    sheets = pd.read_excel(BytesIO(response.content), sheet_name=None, engine="openpyxl")
    assert list(sheets) == ["monthly", "department"]


def test_workbook_download_with_korean_label(client, payload):
    payload["settings"] = {"report_label": "요청 보고서"}

    response = client.post("/export/workbook", json=payload)

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="______')
    assert "filename*=UTF-8''" + quote("요청 보고서_") in disposition
    assert disposition.endswith(".xlsx")


def test_snapshot_busy_returns_409(client, payload, monkeypatch):
    class BusyController(ExportController):
        async def export_snapshot(self, surface, **kwargs):
            return ExportOutcome(status="rejected", message="Another export is already in progress.")

    monkeypatch.setattr(main, "export_controller", BusyController())

    response = client.post("/export/snapshot", json=payload)

    assert response.status_code == 409
    assert response.json()["type"] == "ExportBusy"


def test_snapshot_download(client, payload, monkeypatch):
    class StubController(ExportController):
        async def export_snapshot(self, surface, **kwargs):
            assert surface is not None
            return ExportOutcome(
                status="composed",
                document=ExportDocument("request_report_20240101_0000.pdf", b"%PDF-1.4", "application/pdf"),
            )

    monkeypatch.setattr(main, "export_controller", StubController())

    response = client.post("/export/snapshot", json=payload)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == b"%PDF-1.4"


def test_snapshot_of_empty_report_fails_cleanly(client):
    response = client.post("/export/snapshot", json={})

    assert response.status_code == 500
    assert "empty" in response.json()["error"]
