"""Registry of every TypeDef produced during resolution.

The :class:`TypeGraph` is the single owner of type definitions. The schema
resolver registers placeholders and replaces them with finished
definitions; the name resolver replaces definitions with named copies.
Once :meth:`TypeGraph.freeze` succeeds the graph is read-only, every
reference resolves, no placeholder remains, and declared identifiers are
unique.

References between types are keys, never object pointers, so a schema
that (directly or indirectly) contains itself is simply a key that
appears in its own reachable set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import Mapping, Optional

from specgen.exceptions import GraphFrozenError, NameCollisionError, RefResolutionError
from specgen.models import (
    AliasDef,
    ArrayDef,
    EnumDef,
    GraphSnapshot,
    MapDef,
    PendingDef,
    PrimitiveDef,
    PrimitiveType,
    StructDef,
    TypeDef,
    TypeKey,
    UnionDef,
)

logger = logging.getLogger(__name__)

BUILTIN_PREFIX = "primitive:"


def builtin_key(primitive: PrimitiveType, format: Optional[str] = None, nullable: bool = False) -> TypeKey:
    """Registry key of a shared primitive builtin.

    Example::

        >>> builtin_key(PrimitiveType.STRING, "date-time", nullable=True)
        'primitive:string:date-time?'
    """
    key = BUILTIN_PREFIX + primitive.value
    if format:
        key += f":{format}"
    if nullable and primitive not in (PrimitiveType.NULL, PrimitiveType.ANY):
        key += "?"
    return key


class TypeGraph:
    """Keyed registry of :data:`~specgen.models.TypeDef` objects.

    Iteration order is registration order, which makes every consumer
    deterministic for a given document.
    """

    def __init__(self) -> None:
        self._types: dict[TypeKey, TypeDef] = {}
        self._view: Mapping[TypeKey, TypeDef] = MappingProxyType(self._types)
        self._frozen = False

    # ------------------------------------------------------------------ #
    # Read access
    # ------------------------------------------------------------------ #

    def __contains__(self, key: object) -> bool:
        return key in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[TypeKey]:
        return iter(self._types)

    def __getitem__(self, key: TypeKey) -> TypeDef:
        try:
            return self._types[key]
        except KeyError:
            raise RefResolutionError(f"Unknown type key '{key}'") from None

    def get(self, key: TypeKey) -> Optional[TypeDef]:
        return self._types.get(key)

    def keys(self) -> list[TypeKey]:
        """Every registered key in registration order."""
        return list(self._types)

    @property
    def types(self) -> Mapping[TypeKey, TypeDef]:
        """Read-only view of the registry."""
        return self._view

    @property
    def frozen(self) -> bool:
        return self._frozen

    def declared(self) -> list[TypeDef]:
        """Declared types in registration order."""
        return [t for t in self._types.values() if t.declared]

    def walk(self, roots: Iterable[TypeKey]) -> list[TypeKey]:
        """Return every key reachable from *roots* (roots included), depth first.

        Cycles are visited once. Unknown keys are skipped here; dangling
        references are reported by :meth:`freeze`.
        """
        seen: dict[TypeKey, None] = {}
        stack = list(reversed(list(roots)))
        while stack:
            key = stack.pop()
            if key in seen:
                continue
            seen[key] = None
            typedef = self._types.get(key)
            if typedef is not None:
                stack.extend(reversed(typedef.references()))
        return list(seen)

    def unwrap(self, key: TypeKey) -> TypeDef:
        """Follow undeclared aliases until a concrete definition is reached."""
        typedef = self[key]
        seen = {key}
        while isinstance(typedef, AliasDef) and not typedef.declared:
            if typedef.target in seen:
                raise RefResolutionError("Alias cycle", location=key)
            seen.add(typedef.target)
            typedef = self[typedef.target]
        return typedef

    def equivalent(self, a: TypeKey, b: TypeKey) -> bool:
        """Whether the types under *a* and *b* have the same structure.

        Identity, names and top-level nullability are ignored; nested
        types are compared recursively. Pairs already under comparison
        count as equal, so cyclic types terminate.
        """
        return self._equivalent(a, b, set())

    def _equivalent(self, a: TypeKey, b: TypeKey, assumed: set[tuple[TypeKey, TypeKey]]) -> bool:
        if a == b or (a, b) in assumed:
            return True
        assumed.add((a, b))
        left, right = self[a], self[b]
        if type(left) is not type(right):
            return False

        if isinstance(left, PrimitiveDef):
            return (left.primitive, left.format, left.nullable) == (
                right.primitive,
                right.format,
                right.nullable,
            )
        if isinstance(left, ArrayDef):
            return self._equivalent(left.element, right.element, assumed)
        if isinstance(left, MapDef):
            return self._equivalent(left.value, right.value, assumed)
        if isinstance(left, AliasDef):
            return self._equivalent(left.target, right.target, assumed)
        if isinstance(left, EnumDef):
            return left.primitive == right.primitive and [v.value for v in left.variants] == [
                v.value for v in right.variants
            ]
        if isinstance(left, StructDef):
            if len(left.fields) != len(right.fields):
                return False
            if (left.extra is None) != (right.extra is None):
                return False
            if left.extra is not None and not self._equivalent(left.extra, right.extra, assumed):
                return False
            return all(
                lf.raw_name == rf.raw_name
                and lf.required == rf.required
                and self._equivalent(lf.type, rf.type, assumed)
                for lf, rf in zip(left.fields, right.fields)
            )
        if isinstance(left, UnionDef):
            if (left.tag, left.match, len(left.members)) != (right.tag, right.match, len(right.members)):
                return False
            return all(
                self._equivalent(lm, rm, assumed) for lm, rm in zip(left.members, right.members)
            )
        return False

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def register(self, typedef: TypeDef) -> TypeKey:
        """Add a new definition. The key must not be registered yet."""
        self._check_mutable()
        if typedef.key in self._types:
            raise ValueError(f"Type key already registered: {typedef.key}")
        self._types[typedef.key] = typedef
        return typedef.key

    def replace(self, typedef: TypeDef) -> None:
        """Swap the definition stored under ``typedef.key``."""
        self._check_mutable()
        if typedef.key not in self._types:
            raise KeyError(typedef.key)
        self._types[typedef.key] = typedef

    def placeholder(self, key: TypeKey, path: str, qualifier: int = 1) -> None:
        """Register a :class:`~specgen.models.PendingDef` for a schema about to be resolved."""
        self.register(PendingDef(key=key, path=path, qualifier=qualifier))

    def builtin(
        self,
        primitive: PrimitiveType,
        format: Optional[str] = None,
        nullable: bool = False,
    ) -> TypeKey:
        """Return the key of a shared primitive builtin, registering it on first use."""
        key = builtin_key(primitive, format, nullable)
        if key not in self._types:
            self.register(
                PrimitiveDef(
                    key=key,
                    path="",
                    primitive=primitive,
                    format=format,
                    nullable=key.endswith("?"),
                )
            )
        return key

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError("Type graph is frozen")

    # ------------------------------------------------------------------ #
    # Freezing
    # ------------------------------------------------------------------ #

    def freeze(self) -> None:
        """Validate the graph and make it read-only.

        Raises:
            RefResolutionError: If a placeholder is left, a reference
                dangles, or an alias chain loops without reaching a
                concrete definition.
            NameCollisionError: If a declared type, struct field or enum
                variant lacks an identifier or shares one with a sibling.
        """
        if self._frozen:
            return

        names: dict[str, TypeKey] = {}
        for key, typedef in self._types.items():
            if isinstance(typedef, PendingDef):
                raise RefResolutionError("Type was never resolved", location=key)
            for ref in typedef.references():
                if ref not in self._types:
                    raise RefResolutionError(f"Dangling reference to '{ref}'", location=key)
            if typedef.declared:
                if typedef.name is None:
                    raise NameCollisionError("Declared type has no identifier", location=typedef.path)
                if typedef.name in names:
                    raise NameCollisionError(
                        f"Identifier '{typedef.name}' is used by both "
                        f"'{self._types[names[typedef.name]].path}' and '{typedef.path}'",
                        location=typedef.path,
                    )
                names[typedef.name] = key
            if isinstance(typedef, StructDef):
                _check_members(typedef.path, [f.name for f in typedef.fields], "field")
            elif isinstance(typedef, EnumDef):
                _check_members(typedef.path, [v.name for v in typedef.variants], "variant")

        for key, typedef in self._types.items():
            if isinstance(typedef, AliasDef):
                self._check_alias_chain(key)

        self._frozen = True
        logger.debug("Froze type graph with %d types (%d declared)", len(self._types), len(names))

    def _check_alias_chain(self, key: TypeKey) -> None:
        """Every alias, declared or not, must end at a concrete definition."""
        typedef = self._types[key]
        seen = {key}
        while isinstance(typedef, AliasDef):
            if typedef.target in seen:
                raise RefResolutionError(
                    f"Alias chain through '{typedef.target}' never reaches a concrete type",
                    location=self._types[key].path,
                )
            seen.add(typedef.target)
            typedef = self._types[typedef.target]

    def snapshot(self) -> GraphSnapshot:
        """Serializable copy of every definition, in registration order."""
        return GraphSnapshot(types=list(self._types.values()))


def _check_members(path: str, names: list[Optional[str]], what: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name is None:
            raise NameCollisionError(f"Unnamed {what}", location=path)
        if name in seen:
            raise NameCollisionError(f"Duplicate {what} identifier '{name}'", location=path)
        seen.add(name)
