"""OpenAPI document access -- load, navigate, and filter.

This sub-package is the boundary between raw bytes and the resolvers:

* :mod:`~specgen.parser.loader` -- I/O (URL, file, stdin), JSON/YAML
  detection and OpenAPI version validation.
* :mod:`~specgen.parser.document` -- :class:`Document`, a read-only view
  with JSON-pointer navigation and ``$ref`` following.
* :mod:`~specgen.parser.ignore` -- removes ignored paths and components
  before resolution.

Typical usage::

    from specgen.parser import apply_ignore, load_document

    document = apply_ignore(load_document("openapi.yaml"), config.ignore)
"""

from specgen.parser.document import Document
from specgen.parser.ignore import apply_ignore
from specgen.parser.loader import load_document, load_spec, validate_openapi_version

__all__ = ["Document", "apply_ignore", "load_document", "load_spec", "validate_openapi_version"]
