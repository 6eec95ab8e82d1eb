"""specgen -- Turn OpenAPI 3.0/3.1 documents into typed Python client packages.

The package resolves the recursive, ``$ref``-laden schema graph of an OpenAPI
document into a frozen intermediate representation (a type graph plus a list
of operations) in which every reference resolves, every identifier is legal
and no two declared types share a name. An emitter then renders that IR into
source files.

Typical workflow::

    specgen init                                  # write a specgen.json skeleton
    specgen generate -s openapi.yaml -o ./client  # resolve and emit

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for configuration and the IR.
    config: Configuration loading, precedence resolution and atomic writes.
    pipeline: The end-to-end ``build_ir`` orchestration.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
