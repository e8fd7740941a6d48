"""Core value types shared across ao_coverage components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

LEGACY_FORMAT = "tarpaulin"


@dataclass(frozen=True)
class GradientStyle:
    """Thresholds for badge colouring: fully green at ``stage1``, red below ``stage2``."""

    stage1: float
    stage2: float


@dataclass(frozen=True)
class HeadContext:
    """Latest known commit for a branch and the report format stored for it."""

    commit: str
    format: str

    @classmethod
    def from_document(cls, raw: object) -> "HeadContext":
        """Decode a stored head, accepting the legacy bare-commit form."""
        if isinstance(raw, str):
            return cls(commit=raw, format=LEGACY_FORMAT)
        if isinstance(raw, dict):
            commit = raw.get("commit")
            fmt = raw.get("format")
            if isinstance(commit, str) and isinstance(fmt, str):
                return cls(commit=commit, format=fmt)
        raise ValueError(f"Unrecognised head document: {raw!r}")

    def to_document(self) -> Dict[str, Any]:
        return {"commit": self.commit, "format": self.format}


@dataclass(frozen=True)
class HeadIdentity:
    """A branch update: which branch of which repository now points at ``head``."""

    organization: str
    repository: str
    branch: str
    head: HeadContext
