from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from core.palette import DEFAULT_STATUS_COLORS


PAGE_SIZES = ("A4", "LETTER")


@dataclass(frozen=True)
class ReportSettings:
    window_months: int = 12
    top_n: int = 10
    report_label: str = "request_report"
    page_size: str = "A4"
    status_colors: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_STATUS_COLORS))


def _as_bounded_int(value: object, default: int, low: int, high: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        out = default
    return max(low, min(high, out))


def _as_color_map(values: Optional[Mapping[object, object]]) -> Dict[str, str]:
    colors = dict(DEFAULT_STATUS_COLORS)
    if not values:
        return colors
    for status, color in values.items():
        if status is None or color is None:
            continue
        key = str(status).strip()
        if key:
            colors[key] = str(color).strip()
    return colors


def normalize_settings(raw: Optional[dict] = None) -> ReportSettings:
    raw = raw or {}

    window_months = _as_bounded_int(raw.get("window_months", 12), 12, 1, 120)
    top_n = _as_bounded_int(raw.get("top_n", 10), 10, 1, 100)

    report_label = str(raw.get("report_label") or "").strip() or "request_report"

    page_size = str(raw.get("page_size") or "A4").strip().upper()
    if page_size not in PAGE_SIZES:
        page_size = "A4"

    return ReportSettings(
        window_months=window_months,
        top_n=top_n,
        report_label=report_label,
        page_size=page_size,
        status_colors=_as_color_map(raw.get("status_colors")),
    )
