"""Typed result variants and exceptions for ao_coverage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeGuard, Union


@dataclass(frozen=True)
class InvalidReportDocument:
    """Returned by a format parser when the uploaded document is unusable."""

    message: str = "Invalid report document"


@dataclass(frozen=True)
class BranchNotFound:
    """Returned by a head lookup when the repository or branch is unknown."""

    message: str = "Branch not found"


_ERROR_VARIANTS = (InvalidReportDocument, BranchNotFound)


def is_error(value: object) -> TypeGuard[Union[InvalidReportDocument, BranchNotFound]]:
    """Return True when ``value`` is one of the typed error variants."""
    return isinstance(value, _ERROR_VARIANTS)


class UploadTooLargeError(Exception):
    """Raised when an upload exceeds the configured byte ceiling."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Upload exceeds the {limit} byte limit")
        self.limit = limit


class ConfigError(RuntimeError):
    """Raised when service configuration is missing or malformed."""


class StartupError(RuntimeError):
    """Raised when the service cannot complete its start-up sequence."""


__all__ = [
    "BranchNotFound",
    "ConfigError",
    "InvalidReportDocument",
    "StartupError",
    "UploadTooLargeError",
    "is_error",
]
