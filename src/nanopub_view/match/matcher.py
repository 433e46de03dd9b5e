"""Template-driven structural matching of assertion triples.

Walks the template's statements in order and, for each, collects the
assertion triples that fit its pattern. Placeholders bind to the concrete
values of the first statement that matches them; every later statement
that mentions the same placeholder only accepts those values. The result
is an ordered list of labelled fields, followed by one field per triple
no statement claimed.

Tie-breaks are always first-match in template and document order.
"""

import logging
import re
from collections.abc import Mapping
from urllib.parse import unquote_plus

from nanopub_view.match.labels import LabelResolver, simple_label
from nanopub_view.match.models import FieldValue, MatchedField, PlaceholderBindings
from nanopub_view.parse.models import Triple, is_absolute_iri, is_local_ref
from nanopub_view.template.models import (
    GroupedStatement,
    Label,
    Placeholder,
    PlaceholderKind,
    StatementPattern,
    Template,
)

logger = logging.getLogger(__name__)

ORCID_MARKER = "orcid.org/"
MAIN_ENTITY_ID = "main-entity"


def collect_iris(triples: list[Triple]) -> list[str]:
    """Absolute IRIs of a graph, de-duplicated in first-seen order."""
    seen: dict[str, None] = {}
    for triple in triples:
        for value in (triple.predicate, triple.subject, triple.object):
            if is_absolute_iri(value):
                seen.setdefault(value, None)
    return list(seen)


async def resolve_labels(
    template: Template,
    assertion: list[Triple],
    resolver: LabelResolver | None,
) -> dict[str, Label | None]:
    """Look up every assertion IRI the template does not label, in one batch.

    A failing resolver yields no labels; matching then falls back to raw values.
    """
    if resolver is None:
        return {}
    wanted = [iri for iri in collect_iris(assertion) if iri not in template.labels]
    if not wanted:
        return {}
    try:
        return dict(await resolver.resolve_batch(wanted))
    except Exception as e:
        logger.warning(f"Label lookup failed for {len(wanted)} IRIs: {e}")
        return {}


class _MatchPass:
    """State of a single matching run. Never shared between documents."""

    def __init__(
        self,
        template: Template,
        assertion: list[Triple],
        labels: Mapping[str, Label | None],
    ) -> None:
        self.template = template
        self.assertion = assertion
        self.labels = labels
        self.bindings = PlaceholderBindings()
        self.matched = [False] * len(assertion)
        self.fields: list[MatchedField] = []
        self.main_placeholder: str | None = None
        self.main_value: str | None = None
        self._statements = template.ordered_statements()

    def run(self) -> list[MatchedField]:
        self._detect_main_entity()

        group_members = self.template.group_member_ids()
        for stmt in self._statements:
            if stmt.id in group_members:
                logger.debug(f"Skipping grouped statement {stmt.id}, checked via its parent")
                continue
            self._match_statement(stmt)

        self._add_unmatched()

        fields = [f for f in self.fields if not all(is_local_ref(v.raw) for v in f.values)]
        for field in fields:
            self._decode_auto_escape(field)
        return fields

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _display(self, raw: str) -> Label:
        return self.template.labels.get(raw) or self.labels.get(raw) or raw

    def _field_label(
        self,
        predicate: str,
        object_placeholder: Placeholder | None = None,
        predicate_placeholder: Placeholder | None = None,
    ) -> Label:
        if self.template.labels.get(predicate):
            return self.template.labels[predicate]
        if object_placeholder and object_placeholder.label:
            return object_placeholder.label
        if predicate_placeholder and predicate_placeholder.label:
            return predicate_placeholder.label
        return self.labels.get(predicate) or simple_label(predicate)

    # ------------------------------------------------------------------
    # Main entity
    # ------------------------------------------------------------------

    def _detect_main_entity(self) -> None:
        counts: dict[str, int] = {}
        for stmt in self._statements:
            for term in (stmt.subject, stmt.object):
                if term.is_placeholder:
                    counts[term.value] = counts.get(term.value, 0) + 1

        self.main_placeholder = next((pid for pid, n in counts.items() if n > 1), None)
        if self.main_placeholder is None:
            return

        self.main_value = self._main_entity_value(self.main_placeholder)
        if self.main_value is None:
            logger.debug(f"No value found for main entity {self.main_placeholder}")
            return

        logger.debug(f"Main entity {self.main_placeholder} = {self.main_value}")
        self.bindings.bind(self.main_placeholder, {self.main_value})

        placeholder = self.template.placeholders.get(self.main_placeholder)
        if placeholder and placeholder.is_resource_only:
            logger.debug("Main entity has only resource types, not shown as a field")
            return

        display = self._display(self.main_value)
        auto_escape = placeholder is not None and placeholder.has_type(PlaceholderKind.AUTO_ESCAPE_URI)
        if not auto_escape and "doi.org/" in self.main_value and isinstance(display, str):
            display = re.sub(r"\s+", "", display)

        self.fields.append(
            MatchedField(
                statement_id=MAIN_ENTITY_ID,
                placeholder_id=self.main_placeholder,
                label=(placeholder.label if placeholder and placeholder.label else "Subject"),
                values=[FieldValue(raw=self.main_value, display=display)],
                types=[PlaceholderKind.EXTERNAL_URI.value],
                is_main_entity=True,
            )
        )

    def _main_entity_value(self, placeholder_id: str) -> str | None:
        # The first statement describes the main entity directly
        first = self._statements[0] if self._statements else None
        if first and first.subject.value == placeholder_id and first.predicate.kind == "iri":
            for triple in self.assertion:
                if triple.predicate == first.predicate.value:
                    return triple.subject

        # Hub node: an object IRI that is itself described elsewhere
        for i, triple in enumerate(self.assertion):
            if not is_absolute_iri(triple.object):
                continue
            if any(j != i and other.subject == triple.object for j, other in enumerate(self.assertion)):
                return triple.object

        for triple in self.assertion:
            if is_local_ref(triple.subject):
                return triple.subject
        return None

    # ------------------------------------------------------------------
    # Statement matching
    # ------------------------------------------------------------------

    def _predicate_fits(self, stmt: StatementPattern, triple: Triple) -> bool:
        if stmt.predicate.is_placeholder:
            return self.bindings.allows(stmt.predicate.value, triple.predicate)
        return triple.predicate == stmt.predicate.value

    def _subject_fits(self, stmt: StatementPattern, triple: Triple) -> bool:
        if stmt.subject.is_creator:
            return ORCID_MARKER in triple.subject
        if stmt.subject.is_placeholder:
            return self.bindings.allows(stmt.subject.value, triple.subject)
        return triple.subject == stmt.subject.value

    def _object_fits(self, stmt: StatementPattern, triple: Triple) -> bool:
        if not stmt.object.is_placeholder:
            return triple.object == stmt.object.value

        placeholder_id = stmt.object.value
        if not self.bindings.allows(placeholder_id, triple.object):
            return False

        placeholder = self.template.placeholders.get(placeholder_id)
        if placeholder and placeholder.has_type(PlaceholderKind.RESTRICTED_CHOICE):
            if placeholder.possible_values and triple.object not in placeholder.possible_values:
                logger.debug(f"{triple.object} is not a possible value of {placeholder_id}")
                return False

        groups = self._groups_about(placeholder_id)
        if groups and not self._satisfies_groups(triple.object, groups):
            logger.debug(f"{triple.object} does not satisfy the grouped statements of {placeholder_id}")
            return False
        return True

    def _match_statement(self, stmt: StatementPattern) -> None:
        hits: list[int] = []
        for i, triple in enumerate(self.assertion):
            if not self._predicate_fits(stmt, triple):
                continue
            if not self._object_fits(stmt, triple):
                continue
            if not self._subject_fits(stmt, triple):
                continue
            if self.main_value is not None and triple.object == self.main_value:
                # Points back at the main entity: claimed, but not shown
                self.matched[i] = True
                continue
            hits.append(i)

        if not hits:
            logger.debug(f"No triples for statement {stmt.id}")
            return

        matches = [self.assertion[i] for i in hits]
        for i in hits:
            self.matched[i] = True
        logger.debug(f"Statement {stmt.id} matched {len(matches)} triples")

        if stmt.predicate.is_placeholder:
            self.bindings.bind(stmt.predicate.value, {t.predicate for t in matches})
        if stmt.object.is_placeholder:
            self.bindings.bind(stmt.object.value, {t.object for t in matches})
        if stmt.subject.is_placeholder:
            self.bindings.bind(stmt.subject.value, {t.subject for t in matches})

        self._add_subject_field(stmt, matches)
        self._add_statement_field(stmt, matches)

    def _add_subject_field(self, stmt: StatementPattern, matches: list[Triple]) -> None:
        if not stmt.subject.is_placeholder or stmt.subject.value == self.main_placeholder:
            return
        placeholder = self.template.placeholders.get(stmt.subject.value)
        if placeholder is None:
            return
        if any(f.is_subject_field and f.placeholder_id == placeholder.id for f in self.fields):
            return

        subjects = list(dict.fromkeys(t.subject for t in matches))
        self.fields.append(
            MatchedField(
                statement_id=f"{stmt.id}-subject",
                placeholder_id=placeholder.id,
                label=placeholder.label or "Subject",
                values=[FieldValue(raw=s, display=self._display(s)) for s in subjects],
                types=[t.value for t in placeholder.types],
                is_subject_field=True,
            )
        )

    def _add_statement_field(self, stmt: StatementPattern, matches: list[Triple]) -> None:
        if any(f.statement_id == stmt.id for f in self.fields):
            return

        predicate = matches[0].predicate if stmt.predicate.is_placeholder else stmt.predicate.value
        values = [
            FieldValue(raw=t.object, display=self._display(t.object), subject=t.subject)
            for t in matches
        ]

        existing = next(
            (f for f in self.fields if f.predicate_uri == predicate and not f.unmatched),
            None,
        )
        if existing is not None and stmt.repeatable:
            existing.values.extend(values)
            return

        object_placeholder = (
            self.template.placeholders.get(stmt.object.value) if stmt.object.is_placeholder else None
        )
        predicate_placeholder = (
            self.template.placeholders.get(stmt.predicate.value) if stmt.predicate.is_placeholder else None
        )
        self.fields.append(
            MatchedField(
                statement_id=stmt.id,
                placeholder_id=object_placeholder.id if object_placeholder else None,
                label=self._field_label(predicate, object_placeholder, predicate_placeholder),
                predicate_uri=predicate,
                values=values,
                types=[t.value for t in object_placeholder.types] if object_placeholder else ["literal"],
                repeatable=stmt.repeatable,
                optional=stmt.optional,
            )
        )

    # ------------------------------------------------------------------
    # Grouped statements
    # ------------------------------------------------------------------

    def _groups_about(self, placeholder_id: str) -> list[tuple[GroupedStatement, list[StatementPattern]]]:
        """Groups with member statements whose subject is ``placeholder_id``."""
        found = []
        for group in self.template.grouped_statements.values():
            members = [
                self.template.statements[sid]
                for sid in group.statement_ids
                if sid in self.template.statements
                and self.template.statements[sid].subject.value == placeholder_id
            ]
            if members:
                found.append((group, members))
        return found

    def _resource_has(self, resource: str, stmt: StatementPattern) -> bool:
        for triple in self.assertion:
            if triple.subject != resource:
                continue
            if not stmt.predicate.is_placeholder and triple.predicate != stmt.predicate.value:
                continue
            if stmt.object.is_placeholder:
                placeholder = self.template.placeholders.get(stmt.object.value)
                if (
                    placeholder
                    and placeholder.has_type(PlaceholderKind.RESTRICTED_CHOICE)
                    and placeholder.possible_values
                    and triple.object not in placeholder.possible_values
                ):
                    continue
                return True
            if triple.object == stmt.object.value:
                return True
        return False

    def _satisfies_groups(
        self,
        resource: str,
        groups: list[tuple[GroupedStatement, list[StatementPattern]]],
    ) -> bool:
        for group, members in groups:
            satisfied = [self._resource_has(resource, stmt) for stmt in members]
            if all(satisfied):
                continue
            # An optional group may be absent altogether, never half-present
            if group.optional and not any(satisfied):
                continue
            return False
        return True

    # ------------------------------------------------------------------
    # Leftovers and display
    # ------------------------------------------------------------------

    def _add_unmatched(self) -> None:
        for i, triple in enumerate(self.assertion):
            if self.matched[i]:
                continue
            self.fields.append(
                MatchedField(
                    label=self._field_label(triple.predicate),
                    predicate_uri=triple.predicate,
                    values=[
                        FieldValue(
                            raw=triple.object,
                            display=self._display(triple.object),
                            subject=triple.subject,
                        )
                    ],
                    types=["literal"],
                    unmatched=True,
                )
            )

    def _decode_auto_escape(self, field: MatchedField) -> None:
        if not field.placeholder_id:
            return
        placeholder = self.template.placeholders.get(field.placeholder_id)
        if not placeholder or not placeholder.has_type(PlaceholderKind.AUTO_ESCAPE_URI):
            return
        if not placeholder.prefix:
            return
        for value in field.values:
            if value.raw.startswith(placeholder.prefix):
                value.display = unquote_plus(value.raw[len(placeholder.prefix) :])
                field.is_decoded_uri = True
        if field.is_decoded_uri and field.is_main_entity:
            field.types = [PlaceholderKind.AUTO_ESCAPE_URI.value]


def match_template(
    template: Template,
    assertion: list[Triple],
    labels: Mapping[str, Label | None] | None = None,
) -> list[MatchedField]:
    """Match assertion triples against a template.

    Args:
        template: Parsed template (shared, never modified)
        assertion: Assertion graph triples in document order
        labels: Resolved labels for IRIs; template labels take precedence

    Returns:
        Ordered fields: main entity, template statements, then unmatched triples
    """
    return _MatchPass(template, assertion, labels or {}).run()


async def amatch_template(
    template: Template,
    assertion: list[Triple],
    resolver: LabelResolver | None = None,
    extra_labels: Mapping[str, Label] | None = None,
) -> list[MatchedField]:
    """Resolve labels for the assertion graph in one batch, then match.

    Args:
        template: Parsed template
        assertion: Assertion graph triples
        resolver: Label source; IRIs already labelled by the template are not requested
        extra_labels: Labels overriding resolver results (e.g. from pubinfo)
    """
    labels = await resolve_labels(template, assertion, resolver)
    labels.update(extra_labels or {})
    return match_template(template, assertion, labels)
