"""Emitter contract shared by every output format.

An emitter turns a frozen :class:`~specgen.pipeline.GeneratedIR` into files.
It must not consult the original document: everything it needs (names,
types, variant maps) is in the IR. Rendering happens fully in memory
first, so a template failure never leaves a partially written output
directory behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from specgen.config import atomic_write
from specgen.exceptions import EmitError
from specgen.pipeline import GeneratedIR

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    """Renders an IR into files under an output directory."""

    name: str

    def render(self, ir: GeneratedIR) -> dict[str, str]:
        """Return ``relative path -> file content`` without touching the disk."""
        ...

    def emit(self, ir: GeneratedIR, output_dir: Path) -> list[Path]:
        """Render and write; returns the paths actually written."""
        ...


def write_files(
    files: dict[str, str],
    output_dir: Path,
    keep_existing: frozenset[str] = frozenset(),
) -> list[Path]:
    """Atomically write rendered *files* below *output_dir*.

    Args:
        files: ``relative path -> content``.
        output_dir: Destination root, created if missing.
        keep_existing: Relative paths that are only written when absent.

    Raises:
        EmitError: If the IR is not frozen or a file cannot be written.
    """
    written: list[Path] = []
    for relative, content in files.items():
        target = output_dir / relative
        if relative in keep_existing and target.exists():
            logger.info("Keeping existing %s", target)
            continue
        try:
            atomic_write(target, content)
        except OSError as exc:
            raise EmitError(f"Failed to write {target}: {exc}") from exc
        written.append(target)
    return written


def require_frozen(ir: GeneratedIR) -> None:
    if not ir.graph.frozen:
        raise EmitError("Emitters only accept a frozen type graph")
