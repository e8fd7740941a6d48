"""Coverage report formats and the registry used to look them up."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from .base import FULL_GREEN, Format, ParseResult, default_color_matches
from .cobertura import CoberturaFormat
from .tarpaulin import TarpaulinFormat


class FormatRegistry:
    """Ordered collection of report formats keyed by their identifier."""

    def __init__(self, formats: Iterable[Format] = ()) -> None:
        self._formats: Dict[str, Format] = {}
        for fmt in formats:
            self.register(fmt)

    def register(self, fmt: Format) -> None:
        if fmt.name in self._formats:
            raise ValueError(f"Format '{fmt.name}' is already registered")
        self._formats[fmt.name] = fmt

    def list_formats(self) -> List[str]:
        """Return format identifiers in registration order."""
        return list(self._formats)

    def get_format(self, name: str) -> Optional[Format]:
        return self._formats.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._formats

    def __iter__(self) -> Iterator[Format]:
        return iter(self._formats.values())


def default_registry() -> FormatRegistry:
    """Build a registry holding every built-in format."""
    return FormatRegistry([TarpaulinFormat(), CoberturaFormat()])


__all__ = [
    "FULL_GREEN",
    "CoberturaFormat",
    "Format",
    "FormatRegistry",
    "ParseResult",
    "TarpaulinFormat",
    "default_color_matches",
    "default_registry",
]
