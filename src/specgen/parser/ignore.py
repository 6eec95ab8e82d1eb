"""Remove ignored paths and component schemas from a document.

The filter runs before any resolution. It never mutates its input: the
returned :class:`~specgen.parser.document.Document` wraps a filtered deep
copy. Removed components are remembered on the new document, so a
``$ref`` that still points at one fails with
:class:`~specgen.exceptions.RefResolutionError` instead of producing a
dangling type.

Ignore entries that match nothing are reported as warnings and otherwise
have no effect.
"""

from __future__ import annotations

import copy
import logging

from specgen.models import IgnoreConfig
from specgen.parser.document import SCHEMAS_POINTER, Document, schema_pointer, unescape_segment

logger = logging.getLogger(__name__)


def component_name(entry: str) -> str:
    """Normalize an ignore entry to a bare component name.

    Accepts ``Pet``, ``/Pet`` and ``#/components/schemas/Pet``.
    """
    prefix = SCHEMAS_POINTER + "/"
    if entry.startswith(prefix):
        return unescape_segment(entry[len(prefix):])
    return entry.lstrip("/")


def apply_ignore(document: Document, ignore: IgnoreConfig) -> Document:
    """Return a copy of *document* without the ignored paths and components.

    Args:
        document: The source document. It is left untouched.
        ignore: Path templates (exact match) and component names to drop.

    Returns:
        A new document whose ``ignored`` set lists the pointers of every
        removed component, in addition to any previously ignored ones.
    """
    if not ignore.paths and not ignore.components:
        return document

    raw = copy.deepcopy(document.raw)

    paths = raw.get("paths") or {}
    for template in ignore.paths:
        if template in paths:
            del paths[template]
            logger.info("Ignoring path %s", template)
        else:
            logger.warning("Ignored path %s does not exist in the document", template)

    schemas = (raw.get("components") or {}).get("schemas") or {}
    removed = set(document.ignored)
    for entry in ignore.components:
        name = component_name(entry)
        if name in schemas:
            del schemas[name]
            removed.add(schema_pointer(name))
            logger.info("Ignoring component %s", name)
        else:
            logger.warning("Ignored component %s does not exist in the document", name)

    return Document(raw, version=document.version, ignored=frozenset(removed))
