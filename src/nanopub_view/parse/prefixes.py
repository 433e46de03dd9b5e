"""Prefix table construction.

Scans raw document text for ``@prefix`` (Turtle) and ``PREFIX`` (SPARQL
style) declarations. Document declarations win over template declarations
when both define the same prefix name.
"""

import logging
import re

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"(?:@prefix|\bPREFIX)\s+([\w-]*):\s*<([^>]*)>", re.IGNORECASE)


def extract_prefixes(text: str | None) -> dict[str, str]:
    """Read prefix declarations from text, later declarations overriding earlier ones."""
    prefixes: dict[str, str] = {}
    if not text:
        return prefixes
    for match in _PREFIX_RE.finditer(text):
        prefixes[match.group(1)] = match.group(2)
    return prefixes


def build_prefix_table(document: str | None, template: str | None = None) -> dict[str, str]:
    """Merge document and template prefixes.

    Args:
        document: Nanopublication text
        template: Optional template text

    Returns:
        Mapping prefix name -> namespace IRI
    """
    table = extract_prefixes(document)
    for name, namespace in extract_prefixes(template).items():
        if name in table:
            if table[name] != namespace:
                logger.debug(
                    f"Prefix '{name}' differs in template ({namespace}), keeping {table[name]}"
                )
            continue
        table[name] = namespace
    return table


def nanopub_uri(text: str | None) -> str:
    """Return the ``this:`` namespace, which is the nanopublication's own URI."""
    return extract_prefixes(text).get("this", "")
