"""Render the landing files (index page, upload script) into the host directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import StartupError

_ENV = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)


@dataclass(frozen=True)
class Template:
    """Information for processing a template file into the output file."""

    input_file: Path
    output_file: Path
    context: Dict[str, str] = field(default_factory=dict)
    data: Optional[str] = None


def process_template(template: Template) -> Template:
    """Render ``input_file`` with ``context`` and write the result to ``output_file``."""
    source = template.input_file.read_text(encoding="utf-8")
    data = _ENV.from_string(source).render(**template.context)
    template.output_file.write_text(data, encoding="utf-8")
    return replace(template, data=data)


def persist_template(template: Template, logger: logging.Logger) -> None:
    """Generate a landing file, tolerating failure when a previous copy exists."""
    try:
        rendered = process_template(template)
    except (OSError, TemplateError) as exc:
        if template.output_file.is_file():
            logger.warning(
                "Could not generate '%s' from template file, but file already exists: %s",
                template.output_file,
                exc,
            )
            return
        raise StartupError(
            f"Error while generating '{template.output_file}' from template file: {exc}"
        ) from exc
    logger.debug("Generated '%s' from template file", rendered.output_file)


def landing_templates(public_dir: Path, host_dir: Path, target_url: str) -> list[Template]:
    """Templates written at start-up, with their rendering context."""
    templates_dir = public_dir / "templates"
    curl_https = "--proto '=https' --tlsv1.2 " if target_url.startswith("https") else ""
    return [
        Template(
            input_file=templates_dir / "sh.tmpl",
            output_file=host_dir / "sh",
            context={"TARGET_URL": target_url},
        ),
        Template(
            input_file=templates_dir / "index.html.tmpl",
            output_file=host_dir / "index.html",
            context={"TARGET_URL": target_url, "CURL_HTTPS": curl_https},
        ),
    ]


__all__ = ["Template", "landing_templates", "persist_template", "process_template"]
