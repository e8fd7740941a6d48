"""FastAPI application exposing the upload and badge endpoints."""

from __future__ import annotations

import re
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response
from pydantic import BaseModel

from .. import __version__
from ..badges import BADGE_FILE_NAME
from ..config import Settings, check_host_dir
from ..errors import UploadTooLargeError, is_error
from ..formats import FormatRegistry, default_registry
from ..logging import get_logger
from ..reports import (
    ArtifactKind,
    IngestResult,
    IngestStatus,
    ReportService,
    Upload,
    read_limited,
)
from ..stores import Metadata, connect
from ..templates import landing_templates, persist_template

MetadataFactory = Callable[[Settings], Awaitable[Metadata]]

_TOKEN_PATTERN = re.compile(r"token=[-\w.~]*")

_INGEST_RESPONSES = {
    IngestStatus.OK: (200, ""),
    IngestStatus.INVALID_TOKEN: (401, "Invalid token"),
    IngestStatus.UNKNOWN_FORMAT: (406, "Invalid reporting format"),
    IngestStatus.TOO_LARGE: (413, "Uploaded file is too large"),
    IngestStatus.INVALID_LOCATION: (400, "Invalid report location"),
    IngestStatus.INVALID_DOCUMENT: (400, "Invalid report document"),
    IngestStatus.UNKNOWN_ERROR: (500, "Unknown error occurred"),
}

FILE_NOT_FOUND = "File not found"
UNKNOWN_ERROR = "Unknown error occurred"


class HealthResponse(BaseModel):
    status: str


def redact_token(url: str) -> str:
    """Strip the upload token's value from a logged URL."""
    return _TOKEN_PATTERN.sub("token=", url)


async def _default_metadata(settings: Settings) -> Metadata:
    return await connect(settings.mongo_uri, settings.mongo_db)


async def handle_startup(settings: Settings, metadata_factory: MetadataFactory) -> Metadata:
    """Check the host directory, open the store and write the landing files."""
    logger = get_logger("startup")
    check_host_dir(settings.host_dir)
    metadata = await metadata_factory(settings)
    try:
        for template in landing_templates(
            settings.public_dir, settings.host_dir, settings.public_url
        ):
            persist_template(template, logger)
    except Exception:
        await metadata.close()
        raise
    return metadata


def _ingest_response(result: IngestResult) -> Response:
    status_code, default_message = _INGEST_RESPONSES[result.status]
    message = result.message if result.message is not None else default_message
    return PlainTextResponse(message, status_code=status_code)


def _declared_length(request: Request) -> Optional[int]:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def create_app(
    settings: Settings,
    *,
    metadata_factory: MetadataFactory = _default_metadata,
    registry: FormatRegistry | None = None,
) -> FastAPI:
    """Create the FastAPI application; the store is opened when the app starts."""

    formats = registry or default_registry()
    logger = get_logger("service")
    http_logger = get_logger("http")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        metadata = await handle_startup(settings, metadata_factory)
        try:
            token = await metadata.initialize_token(settings.token)
            app.state.reports = ReportService(formats, metadata, settings, token=token)
            logger.info(
                "Serving reports from %s (formats: %s)",
                settings.host_dir,
                ", ".join(formats.list_formats()),
            )
            yield
        finally:
            logger.info("Shutting down; closing store connection.")
            await metadata.close()

    app = FastAPI(title="ao-coverage", version=__version__, lifespan=lifespan)

    async def get_reports(request: Request) -> ReportService:
        return request.app.state.reports

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        http_logger.info(
            "%s %s - %d %.0fms",
            request.method,
            redact_token(target),
            response.status_code,
            elapsed,
        )
        return response

    @app.get("/v1/health-check", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/")
    async def index(reports: ReportService = Depends(get_reports)) -> Response:
        return _serve_file(await reports.landing_file("index.html"))

    @app.get("/sh")
    async def upload_script(reports: ReportService = Depends(get_reports)) -> Response:
        return _serve_file(await reports.landing_file("sh"), media_type="text/plain")

    async def upload_report(
        org: str,
        repo: str,
        branch: str,
        commit: str,
        request: Request,
        reports: ReportService = Depends(get_reports),
    ) -> Response:
        rejected = reports.validate(
            request.query_params.get("token"), request.query_params.get("format")
        )
        if rejected is not None:
            return _ingest_response(IngestResult(rejected))

        try:
            body = await read_limited(
                request.stream(),
                settings.upload_limit,
                declared_length=_declared_length(request),
            )
        except UploadTooLargeError:
            return _ingest_response(IngestResult(IngestStatus.TOO_LARGE))

        upload = Upload(
            organization=org,
            repository=repo,
            branch=branch,
            commit=commit,
            format=request.query_params["format"],
        )
        return _ingest_response(await reports.ingest(upload, body))

    app.post("/v1/{org}/{repo}/{branch}/{commit}.html")(upload_report)
    app.post("/v1/{org}/{repo}/{branch}/{commit}.xml")(upload_report)

    @app.get("/v1/{org}/{repo}/{branch}/{commit}.svg")
    async def commit_badge(
        org: str,
        repo: str,
        branch: str,
        commit: str,
        reports: ReportService = Depends(get_reports),
    ) -> Response:
        return _serve_file(
            await reports.commit_artifact(org, repo, branch, commit, BADGE_FILE_NAME)
        )

    def _commit_report(extension: str):  # type: ignore[no-untyped-def]
        async def handler(
            org: str,
            repo: str,
            branch: str,
            commit: str,
            reports: ReportService = Depends(get_reports),
        ) -> Response:
            file_name = reports.report_file_name(extension)
            if file_name is None:
                return PlainTextResponse(FILE_NOT_FOUND, status_code=404)
            return _serve_file(
                await reports.commit_artifact(org, repo, branch, commit, file_name)
            )

        return handler

    app.get("/v1/{org}/{repo}/{branch}/{commit}.html")(_commit_report("html"))
    app.get("/v1/{org}/{repo}/{branch}/{commit}.xml")(_commit_report("xml"))

    def _branch_artifact(kind: ArtifactKind):  # type: ignore[no-untyped-def]
        async def handler(
            org: str,
            repo: str,
            branch: str,
            reports: ReportService = Depends(get_reports),
        ) -> Response:
            try:
                found = await reports.branch_artifact(org, repo, branch, kind)
            except Exception:
                logger.exception("Head lookup failed for %s/%s/%s", org, repo, branch)
                return PlainTextResponse(UNKNOWN_ERROR, status_code=500)
            if is_error(found):
                return PlainTextResponse(found.message, status_code=404)
            return _serve_file(found)

        return handler

    app.get("/v1/{org}/{repo}/{branch}.svg")(_branch_artifact(ArtifactKind.BADGE))
    app.get("/v1/{org}/{repo}/{branch}.html")(_branch_artifact(ArtifactKind.REPORT))
    app.get("/v1/{org}/{repo}/{branch}.xml")(_branch_artifact(ArtifactKind.REPORT))

    return app


def _serve_file(path: Optional[Path], *, media_type: Optional[str] = None) -> Response:
    # content type follows the stored file's name, not the requested extension
    if path is None:
        return PlainTextResponse(FILE_NOT_FOUND, status_code=404)
    return FileResponse(path, media_type=media_type)


def run_service(settings: Settings) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.bind_address,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )
