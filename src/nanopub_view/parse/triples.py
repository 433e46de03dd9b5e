"""Turn lexed graph text into resolved triples.

Handles the nanopublication subset of TriG: one subject per statement,
predicate/object lists separated by ``;``, objects separated by ``,``,
prefixed names, ``<...>`` IRIs and single- or triple-quoted literals with
optional ``^^datatype`` or ``@lang`` suffixes. Blank nodes, collections and
comments are not supported.
"""

import logging
import re
from collections.abc import Iterator

from nanopub_view.parse.lexer import (
    TRIPLE_QUOTE,
    UriStyle,
    detect_uri_style,
    extract_graph_block,
    split_by_semicolon,
    split_objects,
    split_statements,
)
from nanopub_view.parse.models import (
    CREATOR,
    RDF_TYPE,
    GraphName,
    NanopubGraphs,
    Triple,
    is_local_ref,
)

logger = logging.getLogger(__name__)

NT_NS = "https://w3id.org/np/o/ntemplate/"

_HEAD_RE = re.compile(r"^(\S+)\s+(.+)$", re.DOTALL)


def _closing_triple_quote(text: str) -> int:
    """Index of the first unescaped closing triple quote after the opening one."""
    i = text.find(TRIPLE_QUOTE, 3)
    while i != -1:
        backslashes = 0
        j = i - 1
        while j >= 0 and text[j] == "\\":
            backslashes += 1
            j -= 1
        if backslashes % 2 == 0:
            return i
        i = text.find(TRIPLE_QUOTE, i + 1)
    return -1


def _closing_quote(text: str) -> int:
    for i in range(1, len(text)):
        if text[i] == '"' and text[i - 1] != "\\":
            return i
    return -1


class TripleParser:
    """Parse graph blocks into triples using a prefix table."""

    def __init__(self, prefixes: dict[str, str] | None = None) -> None:
        self.prefixes = prefixes or {}

    def expand_uri(self, token: str) -> str:
        """Expand a prefixed name or ``<IRI>``.

        ``a`` becomes rdf:type, the creator placeholder becomes the
        ``CREATOR`` sentinel, ``sub:`` references stay local and unknown
        prefixes are left unchanged.
        """
        if not token:
            return token
        token = token.strip()

        if token == "a":
            return RDF_TYPE
        if token in ("nt:CREATOR", f"<{NT_NS}CREATOR>"):
            return CREATOR
        if token.startswith("<") and token.endswith(">"):
            return token[1:-1]
        if is_local_ref(token):
            return token

        colon = token.find(":")
        if colon >= 0:
            prefix, local = token[:colon], token[colon + 1 :]
            if prefix in self.prefixes:
                return self.prefixes[prefix] + local
        return token

    def clean_object(self, token: str) -> str:
        """Reduce an object token to an IRI or the literal's text."""
        if not token:
            return ""
        obj = token.strip()

        if obj.startswith(TRIPLE_QUOTE):
            end = _closing_triple_quote(obj)
            if end != -1:
                return obj[3:end]
            # Unterminated: keep everything after the opening quotes
            return obj[3:].split("^^")[0]

        if obj.endswith((".", ";")):
            obj = obj[:-1].strip()

        if obj.startswith('"') and len(obj) > 1:
            end = _closing_quote(obj)
            if end != -1:
                return obj[1:end]
            return obj[1:].split("^^")[0]

        if "^^" in obj:
            obj = obj.split("^^")[0].strip()

        return self.expand_uri(obj)

    def iter_raw_triples(self, block: str) -> Iterator[tuple[str, str, str]]:
        """Yield (subject, predicate, object) tokens without any resolution."""
        for statement in split_statements(block):
            subject = None
            for index, segment in enumerate(split_by_semicolon(statement)):
                if index == 0:
                    head = _HEAD_RE.match(segment)
                    if not head:
                        logger.debug(f"Skipping statement without predicate: {segment[:60]!r}")
                        break
                    subject, segment = head.group(1), head.group(2)
                rest = _HEAD_RE.match(segment)
                if not rest:
                    logger.debug(f"Skipping predicate without objects: {segment[:60]!r}")
                    continue
                predicate, objects = rest.group(1), rest.group(2)
                for obj in split_objects(objects):
                    yield subject, predicate, obj

    def parse_triples(self, block: str | None) -> list[Triple]:
        """Parse a graph block into triples in document order."""
        if not block:
            return []
        triples = [
            Triple(
                subject=self.expand_uri(subject),
                predicate=self.expand_uri(predicate),
                object=self.clean_object(obj),
            )
            for subject, predicate, obj in self.iter_raw_triples(block)
        ]
        logger.debug(f"Parsed {len(triples)} triples")
        return triples


def parse_graphs(
    text: str,
    prefixes: dict[str, str],
    style: UriStyle | None = None,
) -> NanopubGraphs:
    """Extract and parse the assertion, provenance and pubinfo graphs.

    A graph that cannot be located is returned empty.
    """
    parser = TripleParser(prefixes)
    style = style or detect_uri_style(text)
    graphs: dict[str, list[Triple]] = {}
    for name in GraphName:
        block = extract_graph_block(text, name, style)
        if block is None:
            logger.warning(f"Could not extract {name.value} graph, treating it as empty")
        graphs[name.value] = parser.parse_triples(block)
    return NanopubGraphs(**graphs)
