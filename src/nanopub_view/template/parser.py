"""Parse template documents into a Template.

Templates are themselves nanopublications, so they go through the same
lexer and triple parser as instance documents. Raw tokens are kept so the
parser can tell literals from IRIs when building statement patterns.
Anything that cannot be located is left out of the result; parsing never
raises on malformed input.
"""

import logging
import re

from nanopub_view.parse.lexer import detect_uri_style, extract_graph_block
from nanopub_view.parse.models import CREATOR, GraphName, is_local_ref
from nanopub_view.parse.prefixes import extract_prefixes
from nanopub_view.parse.triples import NT_NS, TripleParser
from nanopub_view.template.models import (
    GroupedStatement,
    Label,
    LabelInfo,
    Placeholder,
    PlaceholderKind,
    StatementPattern,
    Template,
    Term,
)

logger = logging.getLogger(__name__)

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDF_SUBJECT = f"{RDF_NS}subject"
RDF_PREDICATE = f"{RDF_NS}predicate"
RDF_OBJECT = f"{RDF_NS}object"
RDF_TYPE = f"{RDF_NS}type"
RDFS_LABEL = "http://www.w3.org/2000/01/rdf-schema#label"
DCT_DESCRIPTION = "http://purl.org/dc/terms/description"

NT_HAS_STATEMENT = f"{NT_NS}hasStatement"
NT_HAS_TAG = f"{NT_NS}hasTag"
NT_HAS_PREFIX = f"{NT_NS}hasPrefix"
NT_POSSIBLE_VALUE = f"{NT_NS}possibleValue"

_KNOWN_KINDS = {kind.value: kind for kind in PlaceholderKind}
_PREFIX_LINE_RE = re.compile(r"^\s*(@prefix|PREFIX)\b.*$", re.MULTILINE | re.IGNORECASE)


def _local_name(iri: str) -> str:
    return re.split(r"[#/:]", iri)[-1]


def _is_literal(token: str) -> bool:
    return token.strip().startswith('"')


class _TemplateIndex:
    """Raw template triples grouped by expanded subject, in document order."""

    def __init__(self, parser: TripleParser) -> None:
        self.parser = parser
        self.subjects: dict[str, list[tuple[str, str]]] = {}

    def add_block(self, block: str) -> None:
        for subject, predicate, obj in self.parser.iter_raw_triples(block):
            key = self.parser.expand_uri(subject)
            self.subjects.setdefault(key, []).append((self.parser.expand_uri(predicate), obj))

    def raw_values(self, subject: str, predicate: str) -> list[str]:
        return [obj for pred, obj in self.subjects.get(subject, []) if pred == predicate]

    def values(self, subject: str, predicate: str) -> list[str]:
        return [self.parser.clean_object(obj) for obj in self.raw_values(subject, predicate)]

    def first_literal(self, subject: str, predicate: str) -> str | None:
        for obj in self.raw_values(subject, predicate):
            if _is_literal(obj):
                return self.parser.clean_object(obj)
        return None

    def type_names(self, subject: str) -> list[str]:
        return [_local_name(t) for t in self.values(subject, RDF_TYPE)]

    def subjects_with(self, predicate: str) -> list[str]:
        return [s for s, pairs in self.subjects.items() if any(p == predicate for p, _ in pairs)]


class TemplateParser:
    """Build a Template from template text."""

    def __init__(self, template_text: str, prefixes: dict[str, str] | None = None) -> None:
        self.text = template_text or ""
        table = extract_prefixes(self.text)
        table.update(prefixes or {})
        self.parser = TripleParser(table)
        self.index = _TemplateIndex(self.parser)

    def parse(self) -> Template:
        if not self.text.strip():
            return Template()

        self._index_blocks()
        template = Template()
        self._extract_metadata(template)
        self._extract_placeholders(template)
        self._extract_grouped_statements(template)
        self._extract_statements(template)
        self._extract_labels(template)

        logger.debug(
            f"Parsed template '{template.title or ''}': "
            f"{len(template.statements)} statements, "
            f"{len(template.placeholders)} placeholders, "
            f"{len(template.grouped_statements)} groups"
        )
        return template

    def parse_term(self, token: str, placeholder_ids: set[str] | frozenset[str] = frozenset()) -> Term:
        """Classify a raw pattern token."""
        if _is_literal(token):
            return Term(kind="literal", value=self.parser.clean_object(token))
        value = self.parser.expand_uri(token)
        if value == CREATOR:
            return Term.creator()
        if is_local_ref(value) or value in placeholder_ids:
            return Term(kind="placeholder", value=value)
        return Term(kind="iri", value=value)

    def _index_blocks(self) -> None:
        style = detect_uri_style(self.text)
        found = False
        for name in GraphName:
            block = extract_graph_block(self.text, name, style)
            if block is not None:
                self.index.add_block(block)
                found = True
        if not found:
            # Plain Turtle template without named graphs
            self.index.add_block(_PREFIX_LINE_RE.sub("", self.text))

    def _template_node(self) -> str:
        for subject in self.index.subjects:
            if "AssertionTemplate" in self.index.type_names(subject):
                return subject
        return "sub:assertion"

    def _extract_metadata(self, template: Template) -> None:
        node = self._template_node()
        template.title = self.index.first_literal(node, RDFS_LABEL)
        template.description = self.index.first_literal(node, DCT_DESCRIPTION)

        for subject in self.index.subjects_with(NT_HAS_TAG):
            template.tag = self.index.first_literal(subject, NT_HAS_TAG)
            if template.tag:
                break

        order = self.index.values(node, NT_HAS_STATEMENT)
        if not order:
            for subject in self.index.subjects_with(NT_HAS_STATEMENT):
                if "GroupedStatement" not in self.index.type_names(subject):
                    order = self.index.values(subject, NT_HAS_STATEMENT)
                    break
        template.statement_order = order

    def _extract_placeholders(self, template: Template) -> None:
        for subject in self.index.subjects:
            type_names = self.index.type_names(subject)
            if not any(t.endswith(("Placeholder", "Resource")) for t in type_names):
                continue
            kinds: list[PlaceholderKind] = []
            for name in type_names:
                kind = _KNOWN_KINDS.get(name)
                if kind is None:
                    if name.endswith(("Placeholder", "Resource")):
                        logger.debug(f"Unknown placeholder type {name} on {subject}")
                    continue
                if kind not in kinds:
                    kinds.append(kind)
            template.placeholders[subject] = Placeholder(
                id=subject,
                types=kinds,
                label=self.index.first_literal(subject, RDFS_LABEL) or "",
                prefix=self.index.first_literal(subject, NT_HAS_PREFIX),
                possible_values=[
                    v for v in self.index.values(subject, NT_POSSIBLE_VALUE) if v
                ],
            )

    def _extract_grouped_statements(self, template: Template) -> None:
        for subject in self.index.subjects:
            type_names = self.index.type_names(subject)
            if "GroupedStatement" not in type_names:
                continue
            template.grouped_statements[subject] = GroupedStatement(
                id=subject,
                statement_ids=self.index.values(subject, NT_HAS_STATEMENT),
                optional="OptionalStatement" in type_names,
            )

    def _extract_statements(self, template: Template) -> None:
        placeholder_ids = set(template.placeholders)
        members = template.group_member_ids()
        for subject in self.index.subjects:
            subj = self.index.raw_values(subject, RDF_SUBJECT)
            pred = self.index.raw_values(subject, RDF_PREDICATE)
            obj = self.index.raw_values(subject, RDF_OBJECT)
            if not (subj and pred and obj):
                continue
            type_names = self.index.type_names(subject)
            template.statements[subject] = StatementPattern(
                id=subject,
                subject=self.parse_term(subj[0], placeholder_ids),
                predicate=self.parse_term(pred[0], placeholder_ids),
                object=self.parse_term(obj[0], placeholder_ids),
                optional="OptionalStatement" in type_names,
                repeatable="RepeatableStatement" in type_names,
                grouped="GroupedStatement" in type_names or subject in members,
            )

    def _extract_labels(self, template: Template) -> None:
        labels: dict[str, Label] = {}
        for subject in self.index.subjects:
            label = self.index.first_literal(subject, RDFS_LABEL)
            if not label:
                continue
            description = self.index.first_literal(subject, DCT_DESCRIPTION)
            labels[subject] = LabelInfo(label=label, description=description) if description else label
        template.labels = labels


def parse_template(template_text: str | None, prefixes: dict[str, str] | None = None) -> Template:
    """Parse template text; empty or missing text gives an empty Template.

    Args:
        template_text: Template document (TriG or plain Turtle)
        prefixes: Prefix table taking precedence over the template's own

    Returns:
        Parsed Template
    """
    if not template_text:
        return Template()
    return TemplateParser(template_text, prefixes).parse()
