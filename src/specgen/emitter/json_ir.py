"""Dump the frozen IR as a single ``ir.json`` document.

Useful for debugging naming decisions and for feeding the IR to
generators written in other languages.
"""

from __future__ import annotations

import json
from pathlib import Path

from specgen.emitter.base import require_frozen, write_files
from specgen.pipeline import GeneratedIR


class JsonEmitter:
    name = "json"

    def render(self, ir: GeneratedIR) -> dict[str, str]:
        require_frozen(ir)
        return {"ir.json": json.dumps(ir.to_dict(), indent=2, ensure_ascii=False) + "\n"}

    def emit(self, ir: GeneratedIR, output_dir: Path) -> list[Path]:
        return write_files(self.render(ir), output_dir)
