"""Emitters -- turn a frozen IR into files.

* :class:`~specgen.emitter.python.PythonEmitter` -- a pydantic + httpx
  client package.
* :class:`~specgen.emitter.json_ir.JsonEmitter` -- the IR itself as JSON.

Both satisfy the :class:`~specgen.emitter.base.Emitter` protocol.
"""

from __future__ import annotations

import enum

from specgen.emitter.base import Emitter, write_files
from specgen.emitter.json_ir import JsonEmitter
from specgen.emitter.python import PythonEmitter


class EmitterFormat(str, enum.Enum):
    PYTHON = "python"
    JSON = "json"


def get_emitter(fmt: EmitterFormat) -> Emitter:
    """Return a fresh emitter for *fmt*."""
    if fmt == EmitterFormat.JSON:
        return JsonEmitter()
    return PythonEmitter()


__all__ = [
    "Emitter",
    "EmitterFormat",
    "JsonEmitter",
    "PythonEmitter",
    "get_emitter",
    "write_files",
]
