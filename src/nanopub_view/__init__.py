"""nanopub-view: Structured views of nanopublications.

Parses nanopublication TriG documents into their assertion, provenance
and pubinfo graphs without a full RDF stack, reads the template the
nanopublication was created from, and matches the assertion graph
against that template to produce labelled, ordered fields.
"""

__version__ = "0.1.0"

from nanopub_view.config import NanopubConfig
from nanopub_view.match import (
    CachingLabelResolver,
    LabelResolver,
    MatchedField,
    StaticLabelResolver,
    match_template,
)
from nanopub_view.nanopub import NanopubView, aparse_nanopub, parse_nanopub
from nanopub_view.parse import NanopubGraphs, Triple, parse_graphs
from nanopub_view.template import Template, parse_template

__all__ = [
    "__version__",
    "CachingLabelResolver",
    "LabelResolver",
    "MatchedField",
    "NanopubConfig",
    "NanopubGraphs",
    "NanopubView",
    "StaticLabelResolver",
    "Triple",
    "Template",
    "aparse_nanopub",
    "match_template",
    "parse_graphs",
    "parse_nanopub",
    "parse_template",
]
