"""Quote- and bracket-aware splitting of TriG text.

All splitting is driven by one finite-state scanner with four states:

    NORMAL            delimiters (``.``, ``;``, ``,``, braces) are live
    IN_SINGLE_QUOTE   inside "..."
    IN_TRIPLE_QUOTE   inside \"\"\"...\"\"\", may span lines and hold any delimiter
    IN_ANGLE_BRACKET  inside <...>

Triple quotes are recognised before single quotes. A backslash directly
before a quote does not change state. An unterminated quote simply keeps the
scanner in its quoted state to the end of input, so nothing after it splits.
"""

import logging
import re
from collections.abc import Iterator
from enum import Enum
from typing import Literal

from pydantic import BaseModel

from nanopub_view.parse.models import GraphName

logger = logging.getLogger(__name__)

TRIPLE_QUOTE = '"""'


class ScanState(Enum):
    NORMAL = "normal"
    IN_SINGLE_QUOTE = "single_quote"
    IN_TRIPLE_QUOTE = "triple_quote"
    IN_ANGLE_BRACKET = "angle_bracket"


def _escaped(text: str, i: int) -> bool:
    return i > 0 and text[i - 1] == "\\"


def step(state: ScanState, text: str, i: int, brackets: bool = True) -> tuple[ScanState, int]:
    """Transition function of the scanner.

    Args:
        state: State before reading position ``i``
        text: Full input
        i: Current position
        brackets: Whether ``<...>`` is tracked as an IRI region

    Returns:
        (next state, number of characters consumed)
    """
    char = text[i]

    if state is ScanState.NORMAL:
        if text.startswith(TRIPLE_QUOTE, i) and not _escaped(text, i):
            return ScanState.IN_TRIPLE_QUOTE, 3
        if char == '"' and not _escaped(text, i):
            return ScanState.IN_SINGLE_QUOTE, 1
        if char == "<" and brackets:
            return ScanState.IN_ANGLE_BRACKET, 1
        return ScanState.NORMAL, 1

    if state is ScanState.IN_TRIPLE_QUOTE:
        if text.startswith(TRIPLE_QUOTE, i) and not _escaped(text, i):
            return ScanState.NORMAL, 3
        return state, 1

    if state is ScanState.IN_SINGLE_QUOTE:
        if char == '"' and not _escaped(text, i):
            return ScanState.NORMAL, 1
        return state, 1

    # IN_ANGLE_BRACKET
    if char == ">":
        return ScanState.NORMAL, 1
    return state, 1


class QuoteScanner:
    """Iterate over text as (position, chunk, state-before, state-after).

    A chunk is a single character, or a whole triple quote when one opens
    or closes a long literal.
    """

    def __init__(self, text: str, brackets: bool = True) -> None:
        self.text = text
        self.brackets = brackets
        self.state = ScanState.NORMAL

    def __iter__(self) -> Iterator[tuple[int, str, ScanState, ScanState]]:
        i = 0
        text = self.text
        while i < len(text):
            before = self.state
            after, consumed = step(before, text, i, self.brackets)
            self.state = after
            yield i, text[i : i + consumed], before, after
            i += consumed


def _is_live(before: ScanState, after: ScanState) -> bool:
    return before is ScanState.NORMAL and after is ScanState.NORMAL


def _split(text: str, delimiter: str, needs_whitespace: bool = False) -> list[str]:
    """Split on a delimiter that is live only outside quotes and IRIs."""
    parts: list[str] = []
    start = 0
    for i, chunk, before, after in QuoteScanner(text):
        if chunk != delimiter or not _is_live(before, after):
            continue
        if needs_whitespace and i + 1 < len(text) and not text[i + 1].isspace():
            continue
        parts.append(text[start:i])
        start = i + 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


def split_statements(text: str) -> list[str]:
    """Split a graph block into statements on ``.`` followed by whitespace."""
    return _split(text, ".", needs_whitespace=True)


def split_by_semicolon(text: str) -> list[str]:
    """Split a statement into predicate/object-list segments."""
    return _split(text, ";")


def split_objects(text: str) -> list[str]:
    """Split an object list on commas."""
    return _split(text, ",")


class UriStyle(BaseModel):
    """How the document addresses its graphs, derived from the ``sub:`` prefix."""

    style: Literal["slash", "hash", "unknown"] = "unknown"
    base_uri: str = ""


_SUB_PREFIX_RE = re.compile(r"@prefix\s+sub:\s*<([^>]+)>", re.IGNORECASE)
_HASH_BASE_RE = re.compile(r"<([^>\s]+#)[^>]*>")


def detect_uri_style(text: str) -> UriStyle:
    """Detect slash- or hash-style graph addressing."""
    match = _SUB_PREFIX_RE.search(text or "")
    if not match:
        logger.debug("No sub: prefix declaration found")
        return UriStyle()
    base_uri = match.group(1)
    if base_uri.endswith("/"):
        return UriStyle(style="slash", base_uri=base_uri)
    if base_uri.endswith("#"):
        return UriStyle(style="hash", base_uri=base_uri)
    return UriStyle(base_uri=base_uri)


def _graph_markers(text: str, graph_name: str, style: UriStyle) -> list[str]:
    markers = [f"sub:{graph_name}"]
    if style.style == "hash":
        markers += [f"<{style.base_uri}/{graph_name}>", f"<{style.base_uri}{graph_name}>"]
    elif style.style == "slash":
        markers.append(f"<{style.base_uri}{graph_name}>")
    else:
        match = _HASH_BASE_RE.search(text)
        if match:
            base = match.group(1)
            markers += [f"<{base}/{graph_name}>", f"<{base}{graph_name}>"]
    return markers


def _balanced_block(text: str, start: int) -> str | None:
    """Return text from ``start`` up to the brace closing an already-open one."""
    depth = 1
    body = text[start:]
    for i, chunk, before, after in QuoteScanner(body, brackets=False):
        if not _is_live(before, after):
            continue
        if chunk == "{":
            depth += 1
        elif chunk == "}":
            depth -= 1
            if depth == 0:
                return body[:i]
    return None


def extract_graph_block(
    text: str,
    graph_name: GraphName | str,
    style: UriStyle | None = None,
) -> str | None:
    """Extract the raw contents of a named graph.

    Args:
        text: Full document text
        graph_name: assertion, provenance or pubinfo
        style: URI style, detected from ``text`` when omitted

    Returns:
        Text between the graph's braces, or None when the graph cannot be
        located or is never closed.
    """
    if not text:
        return None
    name = graph_name.value if isinstance(graph_name, GraphName) else graph_name
    style = style or detect_uri_style(text)

    for marker in _graph_markers(text, name, style):
        match = re.search(re.escape(marker) + r"\s*\{", text)
        if not match:
            continue
        block = _balanced_block(text, match.end())
        if block is not None:
            logger.debug(f"Extracted {name} graph using marker {marker}")
            return block

    # Other spellings: ":assertion {", "np1:assertion {", "<http://...#assertion> {"
    for pattern in (
        r"(?:^|\s)[\w-]*:" + re.escape(name) + r"\s*\{",
        r"<[^<>\s]*[#/]" + re.escape(name) + r">\s*\{",
    ):
        match = re.search(pattern, text)
        if not match:
            continue
        block = _balanced_block(text, match.end())
        if block is not None:
            return block

    logger.debug(f"Could not extract graph block: {name}")
    return None
