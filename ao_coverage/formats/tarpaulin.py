"""Parser for cargo-tarpaulin HTML reports."""

from __future__ import annotations

import re
from html.parser import HTMLParser
from typing import List, Optional

from ..errors import InvalidReportDocument
from .base import Format, ParseResult

_COVERED_PATTERN = re.compile(r'"covered":(\d*)')
_COVERABLE_PATTERN = re.compile(r'"coverable":(\d*)')


class _FirstScriptExtractor(HTMLParser):
    """Collects the text of the first ``<script>`` element in a document."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.found = False
        self._inside = False
        self._parts: List[str] = []

    def handle_starttag(self, tag: str, attrs) -> None:  # type: ignore[override]
        if tag == "script" and not self.found:
            self.found = True
            self._inside = True

    def handle_endtag(self, tag: str) -> None:
        if tag == "script":
            self._inside = False

    def handle_data(self, data: str) -> None:
        if self._inside:
            self._parts.append(data)

    @property
    def text(self) -> Optional[str]:
        return "".join(self._parts) if self.found else None


def _accumulate(pattern: re.Pattern[str], data: str) -> int:
    return sum(int(match or 0) for match in pattern.findall(data))


class TarpaulinFormat(Format):
    """Reads the per-file JSON tarpaulin embeds in the report's first script block."""

    name = "tarpaulin"
    file_name = "index.html"

    async def parse_coverage(self, contents: str) -> ParseResult:
        extractor = _FirstScriptExtractor()
        extractor.feed(contents)
        extractor.close()

        data = extractor.text
        if data is None:
            return InvalidReportDocument()

        # flat scan: nesting in the embedded JSON is ignored
        covered = _accumulate(_COVERED_PATTERN, data)
        coverable = _accumulate(_COVERABLE_PATTERN, data)
        if covered > coverable:
            return InvalidReportDocument()

        if coverable == 0:
            return 0.0
        return (100 * covered) / coverable


__all__ = ["TarpaulinFormat"]
