"""Inspect commands -- show what the resolvers make of a document.

Both sub-commands build the full IR (so they fail exactly like
``generate`` would) and print a table, or a JSON array with ``--json``.
"""

from __future__ import annotations

from typing import Optional

import typer

from specgen.models import AliasDef, ArrayDef, EnumDef, MapDef, StructDef, UnionDef
from specgen.output import get_output, info

from specgen.commands._common import build_from_source


inspect_app = typer.Typer(no_args_is_help=True)

_SPEC_OPTION = typer.Option(..., "--spec", "-s", help="OpenAPI document URL or file path.")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Generator config file.")


def _detail(typedef) -> str:  # noqa: ANN001
    if isinstance(typedef, StructDef):
        names = [f.name or f.raw_name for f in typedef.fields]
        text = ", ".join(names[:5])
        return text + "..." if len(names) > 5 else text
    if isinstance(typedef, EnumDef):
        return ", ".join(str(v.value) for v in typedef.variants[:5])
    if isinstance(typedef, UnionDef):
        return f"{typedef.tag.value} ({typedef.match.value if typedef.match else '-'})"
    if isinstance(typedef, AliasDef):
        return f"-> {typedef.target}"
    if isinstance(typedef, ArrayDef):
        return f"[{typedef.element}]"
    if isinstance(typedef, MapDef):
        return f"{{str: {typedef.value}}}"
    return ""


@inspect_app.command("types")
def inspect_types(
    spec: str = _SPEC_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List every named type with its kind, module and naming path.

    Example::

        specgen inspect types --spec ./openapi.yaml
    """
    ir = build_from_source(spec, config)
    declared = sorted(ir.graph.declared(), key=lambda t: (t.module or "", t.name or ""))
    if not declared:
        info("No named types.")
        return

    rows = [
        [t.name or "", t.kind, t.module or "", t.path, _detail(t)]
        for t in declared
    ]
    get_output().print_table(
        ["Name", "Kind", "Module", "Path", "Detail"],
        rows,
        title=f"{ir.title} -- Types ({len(rows)})",
    )


@inspect_app.command("operations")
def inspect_operations(
    spec: str = _SPEC_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List every operation with its function name and response variants.

    Example::

        specgen inspect operations --spec ./openapi.yaml
    """
    ir = build_from_source(spec, config)
    if not ir.operations:
        info("No operations.")
        return

    rows = []
    for op in ir.operations:
        responses = ", ".join(
            f"{r.status_code} {r.content_type}" if r.content_type else str(r.status_code)
            for r in op.responses
        )
        rows.append([
            op.method.value.upper(),
            op.path_template,
            f"{op.module}.{op.name}",
            responses or "-",
            "Yes" if op.is_stream else "",
        ])
    get_output().print_table(
        ["Method", "Path", "Function", "Responses", "Stream"],
        rows,
        title=f"{ir.title} -- Operations ({len(rows)})",
    )
