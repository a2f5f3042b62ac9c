from __future__ import annotations

from core.palette import DEFAULT_STATUS_COLORS
from core.settings import ReportSettings, normalize_settings


def test_defaults():
    settings = normalize_settings(None)

    assert settings == ReportSettings()
    assert settings.window_months == 12
    assert settings.top_n == 10
    assert dict(settings.status_colors) == DEFAULT_STATUS_COLORS


def test_values_are_clamped_and_validated():
    settings = normalize_settings(
        {"window_months": "500", "top_n": "x", "report_label": "  ", "page_size": "legal"}
    )

    assert settings.window_months == 120
    assert settings.top_n == 10
    assert settings.report_label == "request_report"
    assert settings.page_size == "A4"


def test_status_colors_extend_the_palette():
    settings = normalize_settings({"page_size": "letter", "status_colors": {"보류": "#999999", None: "x"}})

    assert settings.page_size == "LETTER"
    assert settings.status_colors["보류"] == "#999999"
    assert settings.status_colors["종료"] == DEFAULT_STATUS_COLORS["종료"]
