"""Generate command -- resolve a document and write a client.

Implements ``specgen generate``. The whole IR is built and frozen before
the emitter renders anything, and every file is written atomically, so a
failing run leaves the output directory as it was.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specgen.emitter import EmitterFormat, get_emitter
from specgen.exceptions import SpecgenError
from specgen.output import debug, error, info, success

from specgen.commands._common import build_from_source


def generate_command(
    spec: str = typer.Option(
        ...,
        "--spec",
        "-s",
        help="OpenAPI document URL or file path (use '-' for stdin).",
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Directory the generated files are written to.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Generator config file (JSON or YAML).",
    ),
    fmt: EmitterFormat = typer.Option(
        EmitterFormat.PYTHON,
        "--format",
        "-f",
        help="Output format.",
        case_sensitive=False,
    ),
) -> None:
    """Generate a client (or the raw IR) from an OpenAPI document.

    Example::

        specgen generate --spec ./openapi.yaml --output ./client
        specgen generate -s https://api.example.com/openapi.json -o out --format json
    """
    info(f"Loading {spec}")
    ir = build_from_source(spec, config)
    debug(f"{len(ir.graph.declared())} named types, {len(ir.operations)} operations")

    emitter = get_emitter(fmt)
    try:
        written = emitter.emit(ir, output_dir)
    except SpecgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    for path in written:
        debug(f"Wrote {path}")
    success(f"Generated {len(written)} files in {output_dir}")
