"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one failure class of the resolution pipeline and is
referenced by the corresponding :class:`~specgen.exceptions.SpecgenError`
subclass. CI scripts can branch on the exit code without parsing stderr.

Example::

    $ specgen generate -s openapi.yaml -o out
    $ echo $?
    9   # EXIT_UNSUPPORTED_FEATURE -- the document uses prefixItems
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration problems)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be loaded, parsed or version-checked."""

EXIT_REF_RESOLUTION_ERROR = 8
"""A ``$ref`` points at nothing, or at a component that was ignored."""

EXIT_UNSUPPORTED_FEATURE = 9
"""The document uses a schema construct the resolver does not model."""

EXIT_STRUCTURAL_CONFLICT = 11
"""Two schemas that must be merged disagree structurally."""

EXIT_NAME_COLLISION = 12
"""Identifier disambiguation could not produce a unique legal name."""

EXIT_OPERATION_MODEL_ERROR = 13
"""A path or operation cannot be modelled (bad template, status code, parameter)."""

EXIT_EMIT_ERROR = 14
"""Rendering or writing the generated sources failed."""
