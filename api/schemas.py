from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ReportSettingsModel(BaseModel):
    window_months: int = 12
    top_n: int = 10
    report_label: str = "request_report"
    page_size: str = "A4"
    status_colors: Dict[str, str] = Field(default_factory=dict)


class ReportPayloadModel(BaseModel):
    date_stats: List[Dict[str, Any]] = Field(default_factory=list)
    department_stats: List[Dict[str, Any]] = Field(default_factory=list)
    settings: Optional[ReportSettingsModel] = None


class ErrorResponse(BaseModel):
    error: str
    type: str
