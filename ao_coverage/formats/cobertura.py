"""Parser for Cobertura XML reports."""

from __future__ import annotations

import math

from defusedxml import DefusedXmlException
from defusedxml import ElementTree
from defusedxml.ElementTree import ParseError

from ..errors import InvalidReportDocument
from .base import Format, ParseResult


class CoberturaFormat(Format):
    """Uses the line totals on the root ``<coverage>`` element."""

    name = "cobertura"
    file_name = "index.xml"

    async def parse_coverage(self, contents: str) -> ParseResult:
        try:
            root = ElementTree.fromstring(contents)
        except (ParseError, DefusedXmlException, ValueError):
            return InvalidReportDocument()

        if root is None or root.tag != "coverage":
            return InvalidReportDocument()

        try:
            lines_valid = float(root.attrib["lines-valid"])
            lines_covered = float(root.attrib["lines-covered"])
        except (KeyError, ValueError):
            return InvalidReportDocument()

        if not all(math.isfinite(total) and total >= 0 for total in (lines_valid, lines_covered)):
            return InvalidReportDocument()
        if lines_covered > lines_valid:
            return InvalidReportDocument()

        if lines_valid == 0:
            return 0.0
        return (100 * lines_covered) / lines_valid


__all__ = ["CoberturaFormat"]
