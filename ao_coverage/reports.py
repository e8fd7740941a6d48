"""Report ingestion and retrieval workflows."""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterable, Callable, List, Optional, TypeVar, Union

from .badges import BADGE_FILE_NAME, render_badge
from .config import Settings
from .errors import BranchNotFound, UploadTooLargeError, is_error
from .formats import Format, FormatRegistry
from .logging import get_logger
from .models import HeadContext, HeadIdentity
from .stores import Metadata

T = TypeVar("T")

_FORBIDDEN_SEGMENTS = {"", ".", ".."}


class IngestStatus(Enum):
    OK = "ok"
    INVALID_TOKEN = "invalid-token"
    UNKNOWN_FORMAT = "unknown-format"
    TOO_LARGE = "too-large"
    INVALID_LOCATION = "invalid-location"
    INVALID_DOCUMENT = "invalid-document"
    UNKNOWN_ERROR = "unknown-error"


class ArtifactKind(Enum):
    BADGE = "badge"
    REPORT = "report"


@dataclass(frozen=True)
class Upload:
    """Where an uploaded report belongs and which format it claims to be."""

    organization: str
    repository: str
    branch: str
    commit: str
    format: str


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    message: Optional[str] = None
    coverage: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status is IngestStatus.OK


async def read_limited(
    chunks: AsyncIterable[bytes],
    limit: int,
    *,
    declared_length: Optional[int] = None,
) -> bytes:
    """Accumulate a request body, aborting as soon as it exceeds ``limit`` bytes."""
    if declared_length is not None and declared_length > limit:
        raise UploadTooLargeError(limit)

    received: List[bytes] = []
    size = 0
    async for chunk in chunks:
        size += len(chunk)
        if size > limit:
            raise UploadTooLargeError(limit)
        received.append(chunk)
    return b"".join(received)


def is_safe_segment(segment: str) -> bool:
    """True when ``segment`` names a single directory level below the host dir."""
    if segment in _FORBIDDEN_SEGMENTS:
        return False
    return not any(char in segment for char in ("/", "\\", "\x00"))


class ReportService:
    """Stores uploaded reports with their badges and serves them back."""

    def __init__(
        self,
        registry: FormatRegistry,
        metadata: Metadata,
        settings: Settings,
        *,
        token: str,
    ) -> None:
        self.registry = registry
        self.metadata = metadata
        self.settings = settings
        self._token = token
        self.logger = get_logger("reports")

    # ------------------------------------------------------------------
    # Ingestion

    def validate(self, token: Optional[str], format_name: Optional[str]) -> Optional[IngestStatus]:
        """Check the request before any body is read; None means it may proceed."""
        if token is None or not secrets.compare_digest(token.encode(), self._token.encode()):
            return IngestStatus.INVALID_TOKEN
        if format_name is None or format_name not in self.registry:
            return IngestStatus.UNKNOWN_FORMAT
        return None

    async def ingest(self, upload: Upload, body: bytes) -> IngestResult:
        """Parse, store and publish an uploaded report.

        The directory is only created once the report parses, so a rejected
        upload leaves any previously stored artifacts untouched.
        """
        fmt = self.registry.get_format(upload.format)
        if fmt is None:
            return IngestResult(IngestStatus.UNKNOWN_FORMAT)

        target = self._artifact_dir(
            upload.organization, upload.repository, upload.branch, upload.commit
        )
        if target is None:
            return IngestResult(IngestStatus.INVALID_LOCATION, "Invalid report location")

        try:
            coverage = await fmt.parse_coverage(body.decode("utf-8", errors="replace"))
            if is_error(coverage):
                self.logger.info(
                    "Rejected %s report for %s/%s@%s: %s",
                    fmt.name,
                    upload.organization,
                    upload.repository,
                    upload.commit,
                    coverage.message,
                )
                return IngestResult(IngestStatus.INVALID_DOCUMENT, coverage.message)

            badge = render_badge(
                coverage, fmt.match_color(coverage, self.settings.gradient_style)
            )
            await self._run_blocking(lambda: self._write_artifacts(target, fmt, badge, body))

            identity = HeadIdentity(
                organization=upload.organization,
                repository=upload.repository,
                branch=upload.branch,
                head=HeadContext(commit=upload.commit, format=fmt.name),
            )
            updated = await self.metadata.update_branch(identity)
        except Exception:
            self.logger.exception(
                "Failed to store report for %s/%s/%s@%s",
                upload.organization,
                upload.repository,
                upload.branch,
                upload.commit,
            )
            return IngestResult(IngestStatus.UNKNOWN_ERROR)

        if not updated:
            self.logger.error(
                "Metadata store did not acknowledge head update for %s/%s/%s",
                upload.organization,
                upload.repository,
                upload.branch,
            )
            return IngestResult(IngestStatus.UNKNOWN_ERROR)

        self.logger.debug(
            "Stored %s report for %s/%s/%s@%s at %.2f%%",
            fmt.name,
            upload.organization,
            upload.repository,
            upload.branch,
            upload.commit,
            coverage,
        )
        return IngestResult(IngestStatus.OK, coverage=coverage)

    # ------------------------------------------------------------------
    # Retrieval

    def report_file_name(self, extension: str) -> Optional[str]:
        """Canonical report file stored under the given extension, e.g. ``xml``."""
        for fmt in self.registry:
            if Path(fmt.file_name).suffix == f".{extension}":
                return fmt.file_name
        return None

    async def landing_file(self, file_name: str) -> Optional[Path]:
        """Return a generated landing file from the host directory, or None when absent."""
        return await self._existing(self.settings.host_dir / file_name)

    async def commit_artifact(
        self,
        organization: str,
        repository: str,
        branch: str,
        commit: str,
        file_name: str,
    ) -> Optional[Path]:
        """Return the stored file for an exact commit, or None when absent."""
        directory = self._artifact_dir(organization, repository, branch, commit)
        if directory is None:
            return None
        return await self._existing(directory / file_name)

    async def branch_artifact(
        self,
        organization: str,
        repository: str,
        branch: str,
        kind: ArtifactKind,
    ) -> Union[Path, BranchNotFound, None]:
        """Resolve the branch head, then serve its artifact like an exact-commit request.

        Reports are always looked up under the stored format's file name, so a
        branch's ``.html`` and ``.xml`` URLs both serve whatever was uploaded.
        Store failures propagate to the caller.
        """
        head = await self.metadata.get_head_commit(organization, repository, branch)
        if is_error(head):
            return head

        if kind is ArtifactKind.BADGE:
            file_name = BADGE_FILE_NAME
        else:
            fmt = self.registry.get_format(head.format)
            if fmt is None:
                self.logger.warning(
                    "Branch %s/%s/%s points at unknown format '%s'",
                    organization,
                    repository,
                    branch,
                    head.format,
                )
                return None
            file_name = fmt.file_name

        return await self.commit_artifact(
            organization, repository, branch, head.commit, file_name
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _artifact_dir(
        self, organization: str, repository: str, branch: str, commit: str
    ) -> Optional[Path]:
        segments = (organization, repository, branch, commit)
        if not all(is_safe_segment(segment) for segment in segments):
            return None
        return self.settings.host_dir.joinpath(*segments)

    async def _existing(self, candidate: Path) -> Optional[Path]:
        return candidate if await self._run_blocking(candidate.is_file) else None

    @staticmethod
    def _write_artifacts(target: Path, fmt: Format, badge: str, body: bytes) -> None:
        target.mkdir(parents=True, exist_ok=True)
        (target / BADGE_FILE_NAME).write_text(badge, encoding="utf-8")
        (target / fmt.file_name).write_bytes(body)

    @staticmethod
    async def _run_blocking(func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)


__all__ = [
    "ArtifactKind",
    "IngestResult",
    "IngestStatus",
    "ReportService",
    "Upload",
    "is_safe_segment",
    "read_limited",
]
