"""Base class for coverage report formats and the shared colour gradient."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Union

from ..errors import InvalidReportDocument
from ..models import GradientStyle

ParseResult = Union[float, InvalidReportDocument]

FULL_GREEN = "4c1"
_GREEN_BASE = 0x4C
_RED_BASE = 0xE1
_STEPS = 10
_INTENSITY = "1"


def _clamp_step(index: int) -> int:
    return max(0, min(_STEPS, index))


def default_color_matches(coverage: float, style: GradientStyle) -> str:
    """Map a coverage percentage onto the green -> yellow -> red badge gradient.

    At or above ``stage1`` the badge is fully green. Between the stages the red
    channel climbs in ten steps towards yellow; below ``stage2`` the green
    channel falls in eleven buckets towards fully red.
    """
    if coverage >= style.stage1:
        return FULL_GREEN
    if coverage >= style.stage2:
        ratio = (style.stage1 - coverage) / (style.stage1 - style.stage2)
        step = _clamp_step(math.floor(ratio * _STEPS))
        return format(_GREEN_BASE + 16 * step, "x") + _INTENSITY
    if style.stage2 <= 0:
        # only reachable for negative coverage; pin to full red
        return format(_RED_BASE, "x") + _INTENSITY
    step = _clamp_step(math.floor(coverage / (style.stage2 / 11)))
    return format(_RED_BASE + step, "x") + _INTENSITY


class Format(ABC):
    """Contract for a coverage report format accepted by the upload endpoint."""

    name: str
    file_name: str

    @abstractmethod
    async def parse_coverage(self, contents: str) -> ParseResult:
        """Return the coverage percentage, or ``InvalidReportDocument``."""

    def match_color(self, coverage: float, style: GradientStyle) -> str:
        return default_color_matches(coverage, style)


__all__ = ["FULL_GREEN", "Format", "ParseResult", "default_color_matches"]
