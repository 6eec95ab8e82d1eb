"""Helpers shared by the commands that resolve a document."""

from __future__ import annotations

from typing import Optional

import typer

from specgen.exceptions import SpecgenError
from specgen.output import debug, error
from specgen.pipeline import GeneratedIR


def build_from_source(spec: str, config_path: Optional[str] = None) -> GeneratedIR:
    """Load *spec*, resolve the effective config and build the IR.

    Raises:
        typer.Exit: With the error's exit code on any resolution failure.
    """
    from specgen.config import resolve_config
    from specgen.parser import load_document
    from specgen.pipeline import build_ir

    try:
        config, source = resolve_config(config_path)
        if source is not None:
            debug(f"Using config: {source}")
        document = load_document(spec)
        return build_ir(document, config)
    except SpecgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
