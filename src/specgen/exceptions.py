"""Exception hierarchy for specgen.

All exceptions inherit from :class:`SpecgenError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specgen.exit_codes`
and an optional ``location`` -- the JSON pointer (or naming path) of the
document node that triggered the failure. The top-level handler in
:func:`specgen.app.main` catches ``SpecgenError`` and exits with the
matching code; unexpected exceptions produce a crash log instead.

Every error aborts the run. Nothing is written to the output directory
unless the whole IR was built and frozen successfully.

Subclass hierarchy::

    SpecgenError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ParseError               (exit 7)
    +-- RefResolutionError       (exit 8)
    +-- UnsupportedFeatureError  (exit 9)
    +-- StructuralConflictError  (exit 11)
    +-- NameCollisionError       (exit 12)
    +-- OperationModelError      (exit 13)
    +-- EmitError                (exit 14)
    +-- ConfigError              (exit 1)
    +-- GraphFrozenError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from specgen.exit_codes import (
    EXIT_EMIT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NAME_COLLISION,
    EXIT_OPERATION_MODEL_ERROR,
    EXIT_REF_RESOLUTION_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_STRUCTURAL_CONFLICT,
    EXIT_UNSUPPORTED_FEATURE,
)


class SpecgenError(Exception):
    """Base exception for all specgen errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        location: JSON pointer or naming path of the offending node. When
            given it is appended to the rendered message.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        location: Optional[str] = None,
    ):
        rendered = message if location is None else f"{message} (at {location})"
        super().__init__(rendered)
        self.message = message
        self.location = location
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecgenError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ParseError(SpecgenError):
    """Raised when the OpenAPI document cannot be loaded, parsed, or version-checked."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class RefResolutionError(SpecgenError):
    """Raised when a ``$ref`` target does not exist or was removed by the ignore filter."""

    exit_code = EXIT_REF_RESOLUTION_ERROR


class UnsupportedFeatureError(SpecgenError):
    """Raised for schema constructs outside the modelled subset.

    Examples are ``prefixItems``, ``if``/``then``/``else``, ``not``,
    multi-type ``type`` lists and external ``$ref`` targets.
    """

    exit_code = EXIT_UNSUPPORTED_FEATURE


class StructuralConflictError(SpecgenError):
    """Raised when schemas that must merge disagree.

    Covers ``allOf`` members declaring the same property with different
    types, ``allOf`` cycles, and two paths mapped to one identifier whose
    structures differ.
    """

    exit_code = EXIT_STRUCTURAL_CONFLICT


class NameCollisionError(SpecgenError):
    """Raised when identifier disambiguation cannot terminate with a legal, unique name."""

    exit_code = EXIT_NAME_COLLISION


class OperationModelError(SpecgenError):
    """Raised when a path or operation cannot be modelled.

    Malformed path templates, unparseable status codes, parameters
    without a type and unknown status codes without a mapping all end
    up here.
    """

    exit_code = EXIT_OPERATION_MODEL_ERROR


class EmitError(SpecgenError):
    """Raised when templates fail to render or output files cannot be written."""

    exit_code = EXIT_EMIT_ERROR


class ConfigError(SpecgenError):
    """Raised for configuration problems (unreadable file, invalid JSON/YAML, bad structure)."""

    exit_code = EXIT_GENERIC_FAILURE


class GraphFrozenError(SpecgenError):
    """Raised when something tries to mutate a :class:`~specgen.resolver.graph.TypeGraph` after ``freeze()``."""

    exit_code = EXIT_GENERIC_FAILURE
