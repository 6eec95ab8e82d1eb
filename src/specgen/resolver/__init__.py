"""Schema resolution and code modeling -- the core of specgen.

* :mod:`~specgen.resolver.graph` -- :class:`TypeGraph`, the keyed registry
  of every TypeDef.
* :mod:`~specgen.resolver.schema` -- :class:`SchemaResolver`, JSON Schema
  nodes to TypeDefs with memoization and cycle handling.
* :mod:`~specgen.resolver.names` -- :class:`NameResolver`, identifiers for
  types, fields, variants, operations and modules.
* :mod:`~specgen.resolver.operations` -- :class:`OperationResolver`,
  path items to :class:`~specgen.models.Operation` records.

None of these modules perform I/O, and resolution runs sequentially on a
single thread.
"""

from specgen.resolver.graph import TypeGraph
from specgen.resolver.names import NameResolver, NamingRules, PythonNamingRules
from specgen.resolver.operations import OperationResolver
from specgen.resolver.schema import SchemaResolver

__all__ = [
    "NameResolver",
    "NamingRules",
    "OperationResolver",
    "PythonNamingRules",
    "SchemaResolver",
    "TypeGraph",
]
