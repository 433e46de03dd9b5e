"""Textual parsing of nanopublication TriG into triples."""

from nanopub_view.parse.lexer import extract_graph_block
from nanopub_view.parse.models import GraphName, NanopubGraphs, Triple
from nanopub_view.parse.prefixes import build_prefix_table
from nanopub_view.parse.triples import TripleParser, parse_graphs

__all__ = [
    "GraphName",
    "NanopubGraphs",
    "Triple",
    "TripleParser",
    "build_prefix_table",
    "extract_graph_block",
    "parse_graphs",
]
