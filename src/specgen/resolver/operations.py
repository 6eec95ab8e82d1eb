"""Build :class:`~specgen.models.Operation` records from the document's ``paths``.

For every path template and HTTP method the resolver produces one
operation with merged parameters, one request variant per body content
type, and one response variant per ``(status code, content type)``.
Inline body, parameter and response schemas are resolved through the
:class:`~specgen.resolver.schema.SchemaResolver` under the operation's
naming path (``/<operationId>/RequestBody``, ``/<operationId>/<Status>``),
so the types they create take part in the same naming pass as everything
else.

Operations flagged with ``x-stream: true`` or ``x-websocket: true`` are
streaming operations: their parameters are modelled but their request and
response maps stay empty, since the payload is a stream rather than a
single document.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from specgen.exceptions import OperationModelError
from specgen.models import (
    HTTPMethod,
    MatchStrategy,
    Operation,
    Parameter,
    ParameterLocation,
    PrimitiveType,
    ResponseVariant,
    TypeKey,
    UnionDef,
)
from specgen.parser.document import join_pointer
from specgen.resolver.names import NameResolver, split_words
from specgen.resolver.schema import SchemaResolver, child_path

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([^{}]*)\}")
_STREAM_EXTENSIONS = ("x-stream", "x-websocket")
_BINARY_PREFIXES = ("application/octet-stream", "image/", "audio/", "video/", "application/pdf")


def validate_path_template(template: str) -> list[str]:
    """Check a path template and return its placeholder names in order.

    Raises:
        OperationModelError: If the template does not start with ``/``, has
            unbalanced or nested braces, or an empty or repeated placeholder.
    """
    if not template.startswith("/"):
        raise OperationModelError("Path template must start with '/'", location=template)

    depth = 0
    for char in template:
        if char == "{":
            depth += 1
            if depth > 1:
                raise OperationModelError("Nested '{' in path template", location=template)
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise OperationModelError("Unbalanced '}' in path template", location=template)
    if depth != 0:
        raise OperationModelError("Unclosed '{' in path template", location=template)

    names = _PLACEHOLDER_RE.findall(template)
    seen: set[str] = set()
    for name in names:
        if not name.strip():
            raise OperationModelError("Empty placeholder in path template", location=template)
        if name in seen:
            raise OperationModelError(f"Placeholder '{name}' appears twice", location=template)
        seen.add(name)
    return names


def synthesize_operation_id(method: HTTPMethod, template: str) -> str:
    """Build an id for an operation without ``operationId``.

    Example::

        >>> synthesize_operation_id(HTTPMethod.GET, "/pets/{petId}/photos")
        'get_pets_by_petId_photos'
    """
    parts = [method.value]
    for segment in template.strip("/").split("/"):
        if not segment:
            continue
        match = _PLACEHOLDER_RE.fullmatch(segment)
        if match:
            parts.append(f"by_{match.group(1)}")
        else:
            parts.append(segment)
    return "_".join(parts)


def _content_segment(content_type: str) -> str:
    return "".join(w[0].upper() + w[1:].lower() for w in split_words(content_type)) or "Body"


def _is_stream(operation: dict[str, Any]) -> bool:
    return any(operation.get(ext) is True for ext in _STREAM_EXTENSIONS)


class OperationResolver:
    """Resolve every path item of a document into operations.

    Args:
        schemas: Resolver used for inline and referenced schemas. Its
            document and graph are shared.
        names: Supplies status-code names and operation modules.
    """

    def __init__(self, schemas: SchemaResolver, names: NameResolver) -> None:
        self._schemas = schemas
        self._document = schemas.document
        self._graph = schemas.graph
        self._names = names

    def resolve_all(self) -> list[Operation]:
        """Resolve all operations in document path order, methods in fixed order."""
        operations: list[Operation] = []
        seen_ids: dict[str, str] = {}
        for template, path_item in self._document.paths().items():
            item_pointer = join_pointer("#/paths", template)
            path_item, item_pointer = self._document.follow(path_item, item_pointer)
            if not isinstance(path_item, dict):
                raise OperationModelError("Path item must be an object", location=item_pointer)
            placeholders = validate_path_template(template)

            for method in HTTPMethod:
                raw = path_item.get(method.value)
                if raw is None:
                    continue
                operation = self.resolve(
                    template,
                    method,
                    raw,
                    path_item,
                    join_pointer(item_pointer, method.value),
                    placeholders,
                )
                if operation.id in seen_ids:
                    raise OperationModelError(
                        f"operationId '{operation.id}' is also used by {seen_ids[operation.id]}",
                        location=template,
                    )
                seen_ids[operation.id] = f"{method.value.upper()} {template}"
                operations.append(operation)

        logger.info("Resolved %d operations", len(operations))
        return operations

    def resolve(
        self,
        template: str,
        method: HTTPMethod,
        raw: dict[str, Any],
        path_item: dict[str, Any],
        pointer: str,
        placeholders: Optional[list[str]] = None,
    ) -> Operation:
        """Resolve a single operation object.

        Raises:
            OperationModelError: For parameter, template and response problems.
        """
        if placeholders is None:
            placeholders = validate_path_template(template)
        if not isinstance(raw, dict):
            raise OperationModelError("Operation must be an object", location=pointer)

        operation_id = raw.get("operationId") or synthesize_operation_id(method, template)
        tags = [str(t) for t in raw.get("tags") or []]
        operation = Operation(
            id=str(operation_id),
            method=method,
            path_template=template,
            module=self._names.module_for_operation(str(operation_id), tags),
            summary=raw.get("summary"),
            description=raw.get("description"),
            tags=tags,
            deprecated=raw.get("deprecated") is True,
            is_stream=_is_stream(raw),
        )
        root = f"/{operation.id.replace('/', '_')}"

        operation.parameters = self._parameters(operation, root, raw, path_item, pointer, placeholders)

        if operation.is_stream:
            logger.debug("%s %s is a streaming operation", method.value.upper(), template)
            return operation

        if "requestBody" in raw:
            self._request_body(operation, root, raw["requestBody"], join_pointer(pointer, "requestBody"))
        self._responses(operation, root, raw.get("responses") or {}, join_pointer(pointer, "responses"))
        self._check_unions(operation, pointer)
        return operation

    # ------------------------------------------------------------------ #
    # Parameters
    # ------------------------------------------------------------------ #

    def _parameters(
        self,
        operation: Operation,
        root: str,
        raw: dict[str, Any],
        path_item: dict[str, Any],
        pointer: str,
        placeholders: list[str],
    ) -> list[Parameter]:
        # Operation-level entries override path-level ones with the same (name, in).
        merged: dict[tuple[str, str], tuple[dict[str, Any], str]] = {}
        sources = (
            (path_item.get("parameters") or [], pointer.rsplit("/", 1)[0] + "/parameters"),
            (raw.get("parameters") or [], join_pointer(pointer, "parameters")),
        )
        for entries, base in sources:
            for index, entry in enumerate(entries):
                param, param_pointer = self._document.follow(entry, f"{base}/{index}")
                if not isinstance(param, dict) or "name" not in param or "in" not in param:
                    raise OperationModelError("Parameter needs 'name' and 'in'", location=param_pointer)
                merged[(str(param["name"]), str(param["in"]))] = (param, param_pointer)

        parameters: list[Parameter] = []
        for (name, location_raw), (param, param_pointer) in merged.items():
            try:
                location = ParameterLocation(location_raw)
            except ValueError:
                raise OperationModelError(
                    f"Unknown parameter location '{location_raw}'", location=param_pointer
                ) from None

            if location is ParameterLocation.PATH and name not in placeholders:
                raise OperationModelError(
                    f"Path parameter '{name}' does not appear in the template",
                    location=param_pointer,
                )

            schema, schema_pointer = self._parameter_schema(param, param_pointer)
            type_key = self._schemas.resolve(schema, schema_pointer, child_path(root, name), qualifier=2)
            parameters.append(
                Parameter(
                    raw_name=name,
                    location=location,
                    type=type_key,
                    required=location is ParameterLocation.PATH or param.get("required") is True,
                    description=param.get("description"),
                    default=schema.get("default") if isinstance(schema, dict) else None,
                )
            )

        declared = {p.raw_name for p in parameters if p.location is ParameterLocation.PATH}
        for placeholder in placeholders:
            if placeholder not in declared:
                logger.debug("Synthesizing path parameter %s for %s", placeholder, operation.path_template)
                parameters.append(
                    Parameter(
                        raw_name=placeholder,
                        location=ParameterLocation.PATH,
                        type=self._graph.builtin(PrimitiveType.STRING),
                        required=True,
                    )
                )
        return parameters

    def _parameter_schema(self, param: dict[str, Any], pointer: str) -> tuple[Any, str]:
        if "schema" in param:
            return param["schema"], join_pointer(pointer, "schema")
        content = param.get("content")
        if isinstance(content, dict) and len(content) == 1:
            media_type, media = next(iter(content.items()))
            if isinstance(media, dict) and "schema" in media:
                return media["schema"], join_pointer(pointer, "content", media_type, "schema")
        raise OperationModelError(
            f"Parameter '{param.get('name')}' has no schema", location=pointer
        )

    # ------------------------------------------------------------------ #
    # Bodies
    # ------------------------------------------------------------------ #

    def _request_body(self, operation: Operation, root: str, raw: Any, pointer: str) -> None:
        body, pointer = self._document.follow(raw, pointer)
        if not isinstance(body, dict):
            raise OperationModelError("requestBody must be an object", location=pointer)
        operation.request_required = body.get("required") is True
        operation.request_variants = self._content(
            body.get("content") or {},
            child_path(root, "RequestBody"),
            join_pointer(pointer, "content"),
        )

    def _responses(self, operation: Operation, root: str, raw: Any, pointer: str) -> None:
        if not isinstance(raw, dict):
            raise OperationModelError("responses must be an object", location=pointer)

        variants: list[ResponseVariant] = []
        for code_raw, response in raw.items():
            code_text = str(code_raw)
            response_pointer = join_pointer(pointer, code_text)
            if code_text == "default":
                logger.debug("Skipping default response of %s", operation.id)
                continue
            if not code_text.isdigit():
                raise OperationModelError(f"Unsupported status code '{code_text}'", location=response_pointer)
            status_code = int(code_text)
            if not 100 <= status_code <= 999:
                raise OperationModelError(f"Status code {status_code} is out of range", location=response_pointer)

            status_name = self._names.status_name(status_code)
            if status_name is None:
                raise OperationModelError(
                    f"Status code {status_code} has no standard name; add it to status_code_mapping",
                    location=response_pointer,
                )

            response, response_pointer = self._document.follow(response, response_pointer)
            if not isinstance(response, dict):
                raise OperationModelError("Response must be an object", location=response_pointer)
            description = response.get("description")
            content = response.get("content") or {}
            if not content:
                variants.append(
                    ResponseVariant(status_code=status_code, name=status_name, description=description)
                )
                continue

            by_content = self._content(
                content,
                child_path(root, status_name),
                join_pointer(response_pointer, "content"),
            )
            for content_type, type_key in by_content.items():
                variants.append(
                    ResponseVariant(
                        status_code=status_code,
                        content_type=content_type,
                        type=type_key,
                        name=status_name,
                        description=description,
                    )
                )
        operation.responses = variants

    def _content(self, content: Any, path: str, pointer: str) -> dict[str, TypeKey]:
        """Resolve a ``content`` map into ``content type -> type key``.

        With more than one content type each schema gets its own path
        segment, so the generated types do not fight over one name.
        """
        if not isinstance(content, dict):
            raise OperationModelError("content must be an object", location=pointer)

        fan_out = len(content) > 1
        result: dict[str, TypeKey] = {}
        for content_type, media in content.items():
            media = media if isinstance(media, dict) else {}
            media_path = child_path(path, _content_segment(content_type)) if fan_out else path
            qualifier = len([s for s in media_path.split("/") if s])
            if "schema" in media:
                result[content_type] = self._schemas.resolve(
                    media["schema"],
                    join_pointer(pointer, content_type, "schema"),
                    media_path,
                    qualifier=qualifier,
                )
            elif content_type.startswith(_BINARY_PREFIXES):
                result[content_type] = self._graph.builtin(PrimitiveType.STRING, "binary")
            else:
                result[content_type] = self._graph.builtin(PrimitiveType.ANY)
        return result

    def _check_unions(self, operation: Operation, pointer: str) -> None:
        roots = list(operation.request_variants.values())
        roots.extend(r.type for r in operation.responses if r.type is not None)
        for key in self._graph.walk(roots):
            typedef = self._graph.get(key)
            if isinstance(typedef, UnionDef):
                if not typedef.members or typedef.match is None:
                    raise OperationModelError(
                        f"Union '{typedef.path}' has no usable match strategy", location=pointer
                    )
                if typedef.match is MatchStrategy.DISCRIMINATOR and typedef.discriminator is None:
                    raise OperationModelError(
                        f"Union '{typedef.path}' lacks its discriminator", location=pointer
                    )
