"""SVG badge rendering for coverage percentages."""

from __future__ import annotations

import math

import anybadge

BADGE_FILE_NAME = "badge.svg"
BADGE_LABEL = "coverage"


def coverage_status(coverage: float) -> str:
    """Badge value text: the percentage rounded down, e.g. ``96%``."""
    return f"{math.floor(coverage)}%"


def render_badge(coverage: float, color: str) -> str:
    """Render the coverage badge; ``color`` is a gradient token such as ``4c1``."""
    badge = anybadge.Badge(
        label=BADGE_LABEL,
        value=coverage_status(coverage),
        default_color=f"#{color}",
    )
    return badge.badge_svg_text


__all__ = ["BADGE_FILE_NAME", "coverage_status", "render_badge"]
