from __future__ import annotations

import hashlib
from typing import Dict, Iterable, Mapping, Optional


DEFAULT_STATUS_COLORS: Dict[str, str] = {
    "종료": "rgba(75, 192, 192, 0.5)",
    "요청": "rgba(255, 99, 132, 0.5)",
    "테스트": "rgba(255, 206, 86, 0.5)",
    "협의": "rgba(153, 102, 255, 0.5)",
    "운영점검": "rgba(54, 162, 235, 0.5)",
    "반려": "rgba(255, 159, 64, 0.5)",
}

FALLBACK_COLORS: tuple[str, ...] = (
    "rgba(31, 119, 180, 0.5)",
    "rgba(44, 160, 44, 0.5)",
    "rgba(214, 39, 40, 0.5)",
    "rgba(148, 103, 189, 0.5)",
    "rgba(140, 86, 75, 0.5)",
    "rgba(227, 119, 194, 0.5)",
    "rgba(127, 127, 127, 0.5)",
    "rgba(188, 189, 34, 0.5)",
    "rgba(23, 190, 207, 0.5)",
    "rgba(255, 127, 14, 0.5)",
    "rgba(57, 59, 121, 0.5)",
    "rgba(99, 121, 57, 0.5)",
)


def fallback_color(label: str) -> str:
    """Stable color for a label outside the palette (same label, same color, every run)."""
    digest = hashlib.sha1(label.encode("utf-8")).hexdigest()
    return FALLBACK_COLORS[int(digest[:8], 16) % len(FALLBACK_COLORS)]


def status_color(status: str, palette: Optional[Mapping[str, str]] = None) -> str:
    palette = DEFAULT_STATUS_COLORS if palette is None else palette
    color = palette.get(status)
    if color:
        return color
    return fallback_color(status)


def assign_status_colors(statuses: Iterable[str], palette: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    return {status: status_color(status, palette) for status in statuses}
