"""Init command -- write a generator config skeleton.

Implements ``specgen init``. When a document is given, the project name
is derived from its ``info.title``; everything else starts at its default.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import typer

from specgen.exceptions import SpecgenError
from specgen.output import error, info, success, suggest


def _slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "api-client"


def init_command(
    spec: Optional[str] = typer.Option(
        None,
        "--spec",
        "-s",
        help="OpenAPI document to derive the project name from.",
    ),
    path: Path = typer.Option(
        Path("specgen.json"),
        "--path",
        help="Where to write the config (.json, .yaml or .yml).",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config file."
    ),
) -> None:
    """Create a ``specgen.json`` (or YAML) config file.

    Example::

        specgen init
        specgen init --spec ./openapi.yaml --path specgen.yaml
    """
    from specgen.config import write_config
    from specgen.models import GeneratorConfig, ProjectMetadata

    if path.exists() and not force:
        error(f"{path} already exists")
        suggest("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    config = GeneratorConfig()
    if spec is not None:
        from specgen.parser import load_document

        try:
            document = load_document(spec)
        except SpecgenError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        info(f"Found {len(document.schemas())} component schemas in {document.title}")
        config = GeneratorConfig(
            project_metadata=ProjectMetadata(name=_slugify(document.title)),
        )

    try:
        write_config(path, config)
    except OSError as exc:
        error(f"Failed to write {path}: {exc}")
        raise typer.Exit(code=1) from None

    success(f"Wrote {path}")
    suggest(f"Run: specgen generate --spec <document> --output <dir> --config {path}")
