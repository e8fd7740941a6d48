"""HTTP service mode for ao_coverage."""

from .app import create_app, handle_startup, redact_token, run_service

__all__ = ["create_app", "handle_startup", "redact_token", "run_service"]
