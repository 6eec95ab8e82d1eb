"""End-to-end construction of the intermediate representation.

:func:`build_ir` is the one entry point the CLI (and any embedding
program) needs. It runs the stages in a fixed order, each exactly once::

    apply_ignore -> SchemaResolver (components) -> NameResolver (batch 1)
      -> OperationResolver -> NameResolver (batch 2) -> TypeGraph.freeze

The result is a :class:`GeneratedIR` whose graph is frozen. Any stage may
raise a :class:`~specgen.exceptions.SpecgenError`; nothing is partially
returned.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from specgen.models import GeneratorConfig, Operation, ProjectMetadata
from specgen.parser.document import Document
from specgen.parser.ignore import apply_ignore
from specgen.resolver.graph import TypeGraph
from specgen.resolver.names import NameResolver, NamingRules
from specgen.resolver.operations import OperationResolver
from specgen.resolver.schema import SchemaResolver

logger = logging.getLogger(__name__)


class GeneratedIR(BaseModel):
    """Frozen type graph plus the resolved operations, ready for an emitter."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: TypeGraph
    operations: list[Operation] = Field(default_factory=list)
    metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)
    title: str = "API"
    servers: list[str] = Field(default_factory=list)
    package_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view used by the JSON emitter and ``specgen inspect``."""
        return {
            "title": self.title,
            "servers": self.servers,
            "metadata": self.metadata.model_dump(mode="json"),
            "types": self.graph.snapshot().model_dump(mode="json")["types"],
            "operations": [op.model_dump(mode="json") for op in self.operations],
        }


def build_ir(
    document: Document,
    config: Optional[GeneratorConfig] = None,
    rules: Optional[NamingRules] = None,
) -> GeneratedIR:
    """Resolve *document* into a frozen IR.

    Args:
        document: The loaded document. The ignore filter is applied here.
        config: Mapping, ignore and option settings. Defaults apply when
            omitted.
        rules: Naming strategy; Python conventions by default.

    Returns:
        The frozen :class:`GeneratedIR`.

    Raises:
        SpecgenError: Any resolution failure, with the offending location.
    """
    config = config or GeneratorConfig()
    document = apply_ignore(document, config.ignore)

    graph = TypeGraph()
    schemas = SchemaResolver(document, graph, config.options)
    names = NameResolver(graph, config.name_mapping, rules)

    schemas.resolve_components()
    names.name_types(order=schemas.component_names)

    operations = OperationResolver(schemas, names).resolve_all()
    names.name_types()
    names.check_struct_mapping()
    names.name_operations(operations)

    graph.freeze()
    logger.info(
        "Built IR: %d types (%d declared), %d operations",
        len(graph),
        len(graph.declared()),
        len(operations),
    )
    return GeneratedIR(
        graph=graph,
        operations=operations,
        metadata=config.project_metadata,
        title=document.title,
        servers=document.servers,
        package_name=config.options.package_name,
    )
