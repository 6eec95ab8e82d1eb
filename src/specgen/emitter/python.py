"""Render the IR as an installable Python client package.

Output layout for a package called ``petstore``::

    pyproject.toml              (only written when absent)
    petstore/__init__.py
    petstore/runtime.py         request encoding, response matching, union matching
    petstore/models.py          pydantic models, enums, aliases
    petstore/<module>.py        re-exports for types mapped to other modules
    petstore/api/__init__.py
    petstore/api/<module>.py    one httpx function per operation

The emitter does the type-to-annotation translation in Python and hands
flat view dictionaries to the Jinja2 templates under ``templates/``;
templates contain layout only.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from specgen import __version__
from specgen.emitter.base import require_frozen, write_files
from specgen.exceptions import EmitError
from specgen.models import (
    AliasDef,
    ArrayDef,
    EnumDef,
    MapDef,
    MatchStrategy,
    Operation,
    ParameterLocation,
    PrimitiveDef,
    PrimitiveType,
    StructDef,
    TypeDef,
    TypeKey,
    UnionDef,
)
from specgen.pipeline import GeneratedIR
from specgen.resolver.graph import TypeGraph
from specgen.resolver.names import PythonNamingRules

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``emitter/templates/``)."""

_TYPES_MODULE = "models"

_PRIMITIVE_ANNOTATIONS = {
    PrimitiveType.STRING: "str",
    PrimitiveType.INTEGER: "int",
    PrimitiveType.NUMBER: "float",
    PrimitiveType.BOOLEAN: "bool",
    PrimitiveType.NULL: "None",
    PrimitiveType.ANY: "typing.Any",
}

_FORMAT_ANNOTATIONS = {
    (PrimitiveType.STRING, "date-time"): "datetime.datetime",
    (PrimitiveType.STRING, "date"): "datetime.date",
    (PrimitiveType.STRING, "time"): "datetime.time",
    (PrimitiveType.STRING, "uuid"): "uuid.UUID",
    (PrimitiveType.STRING, "binary"): "bytes",
}

_ENUM_BASES = {
    PrimitiveType.STRING: "str, enum.Enum",
    PrimitiveType.INTEGER: "int, enum.Enum",
}

_UNION_HELPERS = {
    MatchStrategy.EXCLUSIVE: "match_exclusive",
    MatchStrategy.ORDERED: "match_ordered",
    MatchStrategy.DISCRIMINATOR: "match_discriminator",
}


def _docstring(text: Optional[str]) -> str:
    """Make *text* safe to place between triple double quotes."""
    if not text:
        return ""
    return text.strip().replace("\\", "\\\\").replace('"', '\\"')


def _create_jinja_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["docstring"] = _docstring
    env.filters["pyrepr"] = repr
    return env


class Annotator:
    """Translate type keys into Python annotation source text.

    Args:
        graph: The frozen type graph.
        prefix: Qualifier put in front of declared names (``"models."``
            inside the api modules, empty inside ``models.py``).
    """

    def __init__(self, graph: TypeGraph, prefix: str = "") -> None:
        self._graph = graph
        self._prefix = prefix

    def annotation(self, key: TypeKey, quote: bool = False) -> str:
        """Annotation for *key*. With *quote*, declared names become forward references."""
        typedef = self._graph[key]
        base = self._base(typedef, quote)
        if typedef.nullable and base not in ("typing.Any", "None"):
            return f"typing.Optional[{base}]"
        return base

    def _base(self, typedef: TypeDef, quote: bool) -> str:
        if typedef.declared:
            name = f"{self._prefix}{typedef.name}"
            return f'"{name}"' if quote else name
        if isinstance(typedef, PrimitiveDef):
            return _FORMAT_ANNOTATIONS.get(
                (typedef.primitive, typedef.format or ""), _PRIMITIVE_ANNOTATIONS[typedef.primitive]
            )
        if isinstance(typedef, ArrayDef):
            return f"typing.List[{self.annotation(typedef.element, quote)}]"
        if isinstance(typedef, MapDef):
            return f"typing.Dict[str, {self.annotation(typedef.value, quote)}]"
        if isinstance(typedef, AliasDef):
            return self.annotation(typedef.target, quote)
        raise EmitError(f"Cannot annotate undeclared {typedef.kind} type", location=typedef.key)


class PythonEmitter:
    """Generate a pydantic + httpx client package."""

    name = "python"

    def __init__(self, env: Optional[Environment] = None) -> None:
        self._env = env or _create_jinja_env()
        self._rules = PythonNamingRules()

    def package_name(self, ir: GeneratedIR) -> str:
        return ir.package_name or self._rules.member_name(ir.metadata.name)

    def render(self, ir: GeneratedIR) -> dict[str, str]:
        """Render every file of the package into memory.

        Raises:
            EmitError: If the graph is not frozen or a template fails.
        """
        require_frozen(ir)
        package = self.package_name(ir)
        graph = ir.graph

        common = {
            "title": ir.title,
            "package": package,
            "metadata": ir.metadata,
            "servers": ir.servers,
            "generator_version": __version__,
        }

        operations_by_module: dict[str, list[Operation]] = defaultdict(list)
        for operation in ir.operations:
            operations_by_module[operation.module].append(operation)

        reexports: dict[str, list[str]] = defaultdict(list)
        for typedef in graph.declared():
            if typedef.module and typedef.module != _TYPES_MODULE:
                reexports[typedef.module].append(typedef.name)

        files: dict[str, str] = {}
        try:
            files["pyproject.toml"] = self._render("pyproject.toml.j2", common)
            files[f"{package}/__init__.py"] = self._render(
                "package_init.py.j2", {**common, "modules": sorted(reexports)}
            )
            files[f"{package}/runtime.py"] = self._render("runtime.py.j2", common)
            files[f"{package}/{_TYPES_MODULE}.py"] = self._render(
                "models.py.j2", {**common, **self._models_context(graph)}
            )
            for module, names in sorted(reexports.items()):
                files[f"{package}/{module}.py"] = self._render(
                    "reexport.py.j2", {**common, "module": module, "names": names}
                )
            files[f"{package}/api/__init__.py"] = self._render(
                "api_init.py.j2", {**common, "modules": sorted(operations_by_module)}
            )
            annotator = Annotator(graph, prefix=f"{_TYPES_MODULE}.")
            for module, operations in sorted(operations_by_module.items()):
                files[f"{package}/api/{module}.py"] = self._render(
                    "api_module.py.j2",
                    {
                        **common,
                        "module": module,
                        "operations": [self._operation_view(op, annotator) for op in operations],
                    },
                )
        except TemplateError as exc:
            raise EmitError(f"Template rendering failed: {exc}") from exc

        logger.debug("Rendered %d files for package %s", len(files), package)
        return files

    def emit(self, ir: GeneratedIR, output_dir: Path) -> list[Path]:
        return write_files(self.render(ir), output_dir, keep_existing=frozenset({"pyproject.toml"}))

    def _render(self, template: str, context: dict[str, Any]) -> str:
        return self._env.get_template(template).render(**context)

    # ------------------------------------------------------------------ #
    # models.py
    # ------------------------------------------------------------------ #

    def _models_context(self, graph: TypeGraph) -> dict[str, Any]:
        annotator = Annotator(graph)
        enums: list[dict[str, Any]] = []
        classes: list[dict[str, Any]] = []
        aliases: dict[TypeKey, dict[str, Any]] = {}

        for typedef in graph.declared():
            if isinstance(typedef, EnumDef):
                enums.append(
                    {
                        "name": typedef.name,
                        "description": typedef.description,
                        "bases": _ENUM_BASES.get(typedef.primitive, "enum.Enum"),
                        "variants": [(v.name, repr(v.value)) for v in typedef.variants],
                    }
                )
            elif isinstance(typedef, StructDef):
                classes.append(self._struct_view(typedef, annotator))
            elif isinstance(typedef, UnionDef):
                classes.append(self._union_view(typedef, graph, annotator))
            else:
                aliases[typedef.key] = {
                    "name": typedef.name,
                    "description": typedef.description,
                    "annotation": self._alias_annotation(typedef, annotator),
                }

        return {
            "enums": enums,
            "classes": classes,
            "aliases": [aliases[k] for k in _alias_order(graph, list(aliases))],
        }

    def _struct_view(self, struct: StructDef, annotator: Annotator) -> dict[str, Any]:
        fields = []
        for field in struct.fields:
            annotation = annotator.annotation(field.type)
            arguments = []
            if not field.required:
                if not annotation.startswith("typing.Optional[") and annotation not in ("typing.Any", "None"):
                    annotation = f"typing.Optional[{annotation}]"
                if isinstance(field.default, (list, dict)):
                    arguments.append(f"default_factory=lambda: {field.default!r}")
                else:
                    arguments.append(f"default={field.default!r}")
            arguments.append(f"alias={field.raw_name!r}")
            if field.description:
                arguments.append(f"description={field.description!r}")
            fields.append(
                {"name": field.name, "annotation": annotation, "arguments": ", ".join(arguments)}
            )
        return {
            "kind": "struct",
            "name": struct.name,
            "description": struct.description,
            "extra": "allow" if struct.extra is not None else "ignore",
            "fields": fields,
        }

    def _union_view(self, union: UnionDef, graph: TypeGraph, annotator: Annotator) -> dict[str, Any]:
        members = [annotator.annotation(m) for m in union.members]
        arguments = []
        if union.match is MatchStrategy.DISCRIMINATOR and union.discriminator is not None:
            mapping = ", ".join(
                f"{value!r}: {annotator.annotation(key)}"
                for value, key in union.discriminator.mapping.items()
            )
            arguments.append(repr(union.discriminator.property_name))
            arguments.append(f"{{{mapping}}}")
        arguments.append(f"({', '.join(members)},)")
        return {
            "kind": "union",
            "name": union.name,
            "description": union.description,
            "root": f"typing.Union[{', '.join(annotator.annotation(m, quote=True) for m in union.members)}]",
            "helper": _UNION_HELPERS[union.match or MatchStrategy.ORDERED],
            "arguments": ", ".join(arguments),
        }

    def _alias_annotation(self, typedef: TypeDef, annotator: Annotator) -> str:
        if isinstance(typedef, AliasDef):
            target = annotator.annotation(typedef.target)
        elif isinstance(typedef, ArrayDef):
            target = f"typing.List[{annotator.annotation(typedef.element, quote=True)}]"
        elif isinstance(typedef, MapDef):
            target = f"typing.Dict[str, {annotator.annotation(typedef.value, quote=True)}]"
        else:
            raise EmitError(f"Unexpected declared {typedef.kind} type", location=typedef.key)
        if typedef.nullable and not target.startswith("typing.Optional["):
            target = f"typing.Optional[{target}]"
        return target

    # ------------------------------------------------------------------ #
    # api/<module>.py
    # ------------------------------------------------------------------ #

    def _operation_view(self, operation: Operation, annotator: Annotator) -> dict[str, Any]:
        params: dict[str, list[dict[str, Any]]] = {loc.value: [] for loc in ParameterLocation}
        signature = []
        for parameter in operation.parameters:
            annotation = annotator.annotation(parameter.type)
            if parameter.required:
                signature.append(f"{parameter.name}: {annotation}")
            else:
                if not annotation.startswith("typing.Optional[") and annotation != "typing.Any":
                    annotation = f"typing.Optional[{annotation}]"
                signature.append(f"{parameter.name}: {annotation} = {parameter.default!r}")
            params[parameter.location.value].append(
                {"name": parameter.name, "raw_name": parameter.raw_name}
            )

        body = None
        if operation.request_variants:
            content_types = list(operation.request_variants)
            body_types = list(dict.fromkeys(annotator.annotation(k) for k in operation.request_variants.values()))
            body_annotation = body_types[0] if len(body_types) == 1 else f"typing.Union[{', '.join(body_types)}]"
            if operation.request_required:
                signature.append(f"body: {body_annotation}")
            else:
                signature.append(f"body: typing.Optional[{body_annotation}] = None")
            if len(content_types) > 1:
                signature.append(f"content_type: str = {content_types[0]!r}")
                body = {"content_type": "content_type"}
            else:
                body = {"content_type": repr(content_types[0])}

        variants = []
        returns: list[str] = []
        for response in operation.responses:
            content_type = response.content_type.split(";")[0].strip().lower() if response.content_type else None
            if response.type is None:
                runtime_type = "None"
                returns.append("None")
            else:
                runtime_type = annotator.annotation(response.type)
                returns.append(runtime_type)
            variants.append(
                {"status": response.status_code, "content_type": repr(content_type), "type": runtime_type}
            )
        returns = list(dict.fromkeys(returns))
        if operation.is_stream:
            return_annotation = "typing.Iterator[str]"
        elif not returns:
            return_annotation = "None"
        elif len(returns) == 1:
            return_annotation = returns[0]
        else:
            return_annotation = f"typing.Union[{', '.join(returns)}]"

        return {
            "name": operation.name,
            "method": operation.method.value.upper(),
            "path_template": operation.path_template,
            "summary": operation.summary,
            "description": operation.description,
            "deprecated": operation.deprecated,
            "is_stream": operation.is_stream,
            "signature": signature,
            "params": params,
            "body": body,
            "variants": variants,
            "return_annotation": return_annotation,
        }


def _alias_order(graph: TypeGraph, keys: list[TypeKey]) -> list[TypeKey]:
    """Order module-level aliases so that ``A = B`` comes after ``B = ...``."""
    pending = set(keys)
    ordered: list[TypeKey] = []
    visiting: set[TypeKey] = set()

    def visit(key: TypeKey) -> None:
        if key not in pending or key in visiting:
            return
        visiting.add(key)
        typedef = graph[key]
        if isinstance(typedef, AliasDef):
            target = typedef.target
            while target not in pending:
                nested = graph[target]
                if isinstance(nested, AliasDef) and not nested.declared:
                    target = nested.target
                    continue
                break
            visit(target)
        pending.discard(key)
        ordered.append(key)

    for key in keys:
        visit(key)
    return ordered
