"""End-to-end parsing of a nanopublication into a structured view.

Library entry points mirroring the CLI: give them document text (and
optionally template text and a label resolver) and get back a
``NanopubView`` with the matched fields, the raw graphs and the
publication metadata found in pubinfo and provenance.
"""

import asyncio
import logging
from datetime import datetime

from pydantic import BaseModel, Field

from nanopub_view.match.labels import LabelResolver
from nanopub_view.match.matcher import match_template, resolve_labels
from nanopub_view.match.models import MatchedField
from nanopub_view.parse.models import NanopubGraphs, Triple
from nanopub_view.parse.prefixes import build_prefix_table, nanopub_uri
from nanopub_view.parse.triples import NT_NS, parse_graphs
from nanopub_view.template.models import Label, LabelInfo, Template
from nanopub_view.template.parser import parse_template

logger = logging.getLogger(__name__)

DCT = "http://purl.org/dc/terms/"
RDFS_LABEL = "http://www.w3.org/2000/01/rdf-schema#label"
FOAF_NAME = "http://xmlns.com/foaf/0.1/name"
PROV_ATTRIBUTED_TO = "http://www.w3.org/ns/prov#wasAttributedTo"
NT_CREATED_FROM_TEMPLATE = f"{NT_NS}wasCreatedFromTemplate"
NPX_LABEL_FROM_API = "http://purl.org/nanopub/x/hasLabelFromApi"

_NP_HOST_REWRITES = (
    ("http://purl.org/np/", "https://w3id.org/np/"),
    ("https://purl.org/np/", "https://w3id.org/np/"),
)


class NanopubView(BaseModel):
    """Everything the rendering layer needs for one nanopublication."""

    uri: str = ""
    title: str = ""
    author: str = ""
    author_name: str = ""
    author_orcid: str = ""
    date: str = ""
    license: str = ""
    template_uri: str | None = None
    template_title: str | None = None
    template_tag: str | None = None
    structured_data: list[MatchedField] = Field(default_factory=list)
    unmatched_assertions: list[Triple] = Field(default_factory=list)
    assertion: list[Triple] = Field(default_factory=list)
    provenance: list[Triple] = Field(default_factory=list)
    pubinfo: list[Triple] = Field(default_factory=list)
    entity_labels: dict[str, Label] = Field(default_factory=dict)


def normalize_template_uri(uri: str) -> str:
    """Rewrite purl.org nanopub hosts to w3id.org."""
    for old, new in _NP_HOST_REWRITES:
        if uri.startswith(old):
            return new + uri[len(old) :]
    return uri


def template_id(uri: str) -> str:
    """Last path segment of a template URI, without fragment."""
    return uri.rstrip("/").split("/")[-1].split("#")[0]


def find_template_uri(graphs: NanopubGraphs) -> str | None:
    """The template this nanopublication was created from, if declared in pubinfo."""
    for triple in graphs.pubinfo:
        if triple.predicate == NT_CREATED_FROM_TEMPLATE:
            return normalize_template_uri(triple.object)
    return None


def format_date(value: str) -> str:
    """Format an ISO date/datetime literal as ``Month D, YYYY``; unparseable gives ''."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable date: {value!r}")
        return ""
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def _fill_metadata(view: NanopubView, graphs: NanopubGraphs) -> None:
    for triple in graphs.pubinfo:
        predicate = triple.predicate
        if predicate == f"{DCT}creator":
            view.author = triple.object
        elif predicate == f"{DCT}created":
            view.date = format_date(triple.object) or view.date
        elif predicate == FOAF_NAME:
            view.author_name = triple.object
        elif predicate == f"{DCT}license":
            view.license = triple.object
        elif predicate == RDFS_LABEL:
            view.title = triple.object

    for triple in graphs.provenance:
        if triple.predicate == PROV_ATTRIBUTED_TO and "orcid.org" in triple.object:
            view.author_orcid = triple.object


def pubinfo_labels(graphs: NanopubGraphs) -> dict[str, str]:
    """Labels recorded at publication time via ``npx:hasLabelFromApi``."""
    return {
        t.subject: t.object for t in graphs.pubinfo if t.predicate == NPX_LABEL_FROM_API and t.object
    }


def _merge_labels(
    resolved: dict[str, Label | None],
    recorded: dict[str, str],
) -> dict[str, Label]:
    labels: dict[str, Label] = {k: v for k, v in resolved.items() if v}
    for iri, label in recorded.items():
        # Structured labels (label + description) beat plain recorded text
        if isinstance(labels.get(iri), LabelInfo):
            continue
        labels[iri] = label
    return labels


async def aparse_nanopub(
    text: str,
    template_text: str | None = None,
    resolver: LabelResolver | None = None,
) -> NanopubView:
    """Parse a nanopublication and match it against an optional template.

    Args:
        text: Nanopublication TriG text
        template_text: Template document text, if available
        resolver: Label source for IRIs of the assertion graph

    Returns:
        NanopubView. Without a template, ``structured_data`` is empty and
        the assertion triples are returned in ``unmatched_assertions``.
    """
    prefixes = build_prefix_table(text, template_text)
    graphs = parse_graphs(text or "", prefixes)
    template = parse_template(template_text, prefixes) if template_text else Template()

    view = NanopubView(
        uri=nanopub_uri(text),
        template_uri=find_template_uri(graphs),
        template_title=template.title,
        template_tag=template.tag,
        assertion=graphs.assertion,
        provenance=graphs.provenance,
        pubinfo=graphs.pubinfo,
    )
    _fill_metadata(view, graphs)
    if not view.title and template.title:
        view.title = template.title

    resolved = await resolve_labels(template, graphs.assertion, resolver)
    labels = _merge_labels(resolved, pubinfo_labels(graphs))
    view.entity_labels = {**labels, **template.labels}

    if template.is_empty:
        logger.info("No template statements, returning assertion triples unstructured")
        view.unmatched_assertions = list(graphs.assertion)
        return view

    view.structured_data = match_template(template, graphs.assertion, labels)
    logger.info(
        f"Matched {len(view.structured_data)} fields "
        f"({sum(1 for f in view.structured_data if f.unmatched)} unmatched triples)"
    )
    return view


def parse_nanopub(
    text: str,
    template_text: str | None = None,
    resolver: LabelResolver | None = None,
) -> NanopubView:
    """Synchronous wrapper around ``aparse_nanopub``."""
    return asyncio.run(aparse_nanopub(text, template_text, resolver))
