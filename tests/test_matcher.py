"""Tests for nanopub_view.match.matcher."""

import asyncio

from conftest import ARTICLE, CITED_ONE, CITED_TWO, CITO_CITES, DCT_TITLE, EX

from nanopub_view.match import StaticLabelResolver, amatch_template, match_template
from nanopub_view.match.labels import simple_label
from nanopub_view.match.matcher import MAIN_ENTITY_ID, collect_iris
from nanopub_view.parse.models import Triple
from nanopub_view.parse.prefixes import build_prefix_table
from nanopub_view.parse.triples import parse_graphs
from nanopub_view.template import parse_template
from nanopub_view.template.models import (
    GroupedStatement,
    LabelInfo,
    Placeholder,
    PlaceholderKind,
    StatementPattern,
    Template,
    Term,
)


def ph(value: str) -> Term:
    return Term(kind="placeholder", value=value)


def iri(value: str) -> Term:
    return Term(kind="iri", value=value)


def lit(value: str) -> Term:
    return Term(kind="literal", value=value)


def t(s: str, p: str, o: str) -> Triple:
    return Triple(subject=s, predicate=p, object=o)


def make_template(statements: list[StatementPattern], placeholders=(), groups=(), labels=None, order=None) -> Template:
    return Template(
        statements={s.id: s for s in statements},
        statement_order=order or [s.id for s in statements],
        placeholders={p.id: p for p in placeholders},
        grouped_statements={g.id: g for g in groups},
        labels=labels or {},
    )


def field_for(fields, statement_id):
    return next(f for f in fields if f.statement_id == statement_id)


class TestFixtureMatch:
    """Test the citation template against its nanopublication."""

    def _fields(self, nanopub_text, template_text):
        prefixes = build_prefix_table(nanopub_text, template_text)
        graphs = parse_graphs(nanopub_text, prefixes)
        return match_template(parse_template(template_text, prefixes), graphs.assertion)

    def test_field_order(self, nanopub_text, template_text):
        fields = self._fields(nanopub_text, template_text)
        assert [f.statement_id for f in fields] == [MAIN_ENTITY_ID, "sub:st1", "sub:st2", "sub:st3"]

    def test_main_entity(self, nanopub_text, template_text):
        main = self._fields(nanopub_text, template_text)[0]
        assert main.is_main_entity
        assert main.label == "Article"
        assert main.values[0].raw == ARTICLE
        assert main.types == ["ExternalUriPlaceholder"]

    def test_labels_follow_precedence(self, nanopub_text, template_text):
        fields = self._fields(nanopub_text, template_text)
        # Object placeholder label
        assert field_for(fields, "sub:st1").label == "Title"
        # Template label of the predicate beats the placeholder label
        assert field_for(fields, "sub:st2").label == "cites"

    def test_repeatable_values(self, nanopub_text, template_text):
        cites = field_for(self._fields(nanopub_text, template_text), "sub:st2")
        assert cites.repeatable
        assert [v.raw for v in cites.values] == [CITED_ONE, CITED_TWO]
        assert all(v.subject == ARTICLE for v in cites.values)

    def test_template_label_used_for_display(self, nanopub_text, template_text):
        topic = field_for(self._fields(nanopub_text, template_text), "sub:st3")
        assert topic.optional
        assert topic.values[0].raw == f"{EX}Biology"
        assert topic.values[0].display == "Biology"

    def test_nothing_unmatched(self, nanopub_text, template_text):
        assert not any(f.unmatched for f in self._fields(nanopub_text, template_text))


class TestRepeatable:
    """Test repeatable statements."""

    def test_values_in_document_order(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:thing"), predicate=iri(f"{EX}tag"), object=ph("sub:tag"), repeatable=True)]
        )
        assertion = [t(f"{EX}x", f"{EX}tag", v) for v in ("a", "b", "c")]
        fields = match_template(template, assertion)
        assert len(fields) == 1
        assert [v.raw for v in fields[0].values] == ["a", "b", "c"]

    def test_statements_sharing_predicate_merge(self):
        template = make_template([
            StatementPattern(id="st1", subject=ph("sub:a"), predicate=iri(f"{EX}tag"), object=lit("one")),
            StatementPattern(id="st2", subject=ph("sub:b"), predicate=iri(f"{EX}tag"), object=lit("two"), repeatable=True),
        ])
        assertion = [t(f"{EX}x", f"{EX}tag", "one"), t(f"{EX}y", f"{EX}tag", "two")]
        fields = match_template(template, assertion)
        assert len(fields) == 1
        assert [v.raw for v in fields[0].values] == ["one", "two"]

    def test_duplicate_triples_kept(self):
        """Identical triples are tracked by position, not merged."""
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(f"{EX}p"), object=ph("sub:o"), repeatable=True)]
        )
        assertion = [t(f"{EX}x", f"{EX}p", "v"), t(f"{EX}x", f"{EX}p", "v")]
        assert len(match_template(template, assertion)[0].values) == 2


class TestBindings:
    """Test placeholder binding across statements."""

    def test_subject_placeholder_reuses_first_binding(self):
        template = make_template([
            StatementPattern(id="st1", subject=ph("sub:person"), predicate=iri(f"{EX}name"), object=ph("sub:name")),
            StatementPattern(id="st2", subject=ph("sub:person"), predicate=iri(f"{EX}age"), object=ph("sub:age")),
        ])
        assertion = [
            t(f"{EX}alice", f"{EX}name", "Alice"),
            t(f"{EX}bob", f"{EX}age", "30"),
            t(f"{EX}alice", f"{EX}age", "31"),
        ]
        fields = match_template(template, assertion)
        age = field_for(fields, "st2")
        assert [v.subject for v in age.values] == [f"{EX}alice"]
        assert [v.raw for v in field_for(fields, "st1").values] == ["Alice"]
        unmatched = [f for f in fields if f.unmatched]
        assert [f.values[0].subject for f in unmatched] == [f"{EX}bob"]

    def test_object_placeholder_bound_by_first_statement(self):
        template = make_template([
            StatementPattern(id="st1", subject=iri(f"{EX}doc"), predicate=iri(f"{EX}about"), object=ph("sub:topic")),
            StatementPattern(id="st2", subject=iri(f"{EX}other"), predicate=iri(f"{EX}mentions"), object=ph("sub:topic")),
        ])
        assertion = [
            t(f"{EX}doc", f"{EX}about", f"{EX}cats"),
            t(f"{EX}other", f"{EX}mentions", f"{EX}dogs"),
            t(f"{EX}other", f"{EX}mentions", f"{EX}cats"),
        ]
        fields = match_template(template, assertion)
        mentions = [f for f in fields if f.predicate_uri == f"{EX}mentions" and not f.unmatched]
        assert all(v.raw != f"{EX}dogs" for f in mentions for v in f.values)
        assert any(f.unmatched and f.values[0].raw == f"{EX}dogs" for f in fields)

    def test_predicate_placeholder(self):
        template = make_template(
            [StatementPattern(id="st1", subject=iri(f"{EX}x"), predicate=ph("sub:rel"), object=ph("sub:o"))],
            placeholders=[Placeholder(id="sub:rel", types=[PlaceholderKind.EXTERNAL_URI], label="Relation")],
        )
        fields = match_template(template, [t(f"{EX}x", f"{EX}knows", f"{EX}y")])
        assert fields[0].label == "Relation"
        assert fields[0].predicate_uri == f"{EX}knows"

    def test_each_call_starts_fresh(self):
        template = make_template([
            StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(f"{EX}p"), object=ph("sub:o")),
        ])
        first = match_template(template, [t(f"{EX}a", f"{EX}p", "1")])
        second = match_template(template, [t(f"{EX}b", f"{EX}p", "2")])
        assert first[0].values[0].raw == "1"
        assert second[0].values[0].raw == "2"
        assert not any(f.unmatched for f in second)


class TestMainEntity:
    """Test main entity detection."""

    def test_hub_node_and_main_entity_triples_hidden(self):
        template = make_template([
            StatementPattern(id="st1", subject=ph("sub:a"), predicate=iri(f"{EX}knows"), object=ph("sub:b")),
            StatementPattern(id="st2", subject=ph("sub:b"), predicate=iri(f"{EX}name"), object=ph("sub:n")),
        ])
        assertion = [t(f"{EX}alice", f"{EX}knows", f"{EX}bob"), t(f"{EX}bob", f"{EX}name", "Bob")]
        fields = match_template(template, assertion)
        assert fields[0].is_main_entity
        assert fields[0].values[0].raw == f"{EX}bob"
        assert fields[0].label == "Subject"
        # The triple pointing at the main entity is claimed but not shown
        assert not any(f.unmatched for f in fields)
        assert [f.statement_id for f in fields] == [MAIN_ENTITY_ID, "st2"]

    def test_resource_only_main_entity_hidden(self):
        template = make_template(
            [
                StatementPattern(id="st1", subject=ph("sub:r"), predicate=iri(f"{EX}name"), object=ph("sub:n")),
                StatementPattern(id="st2", subject=ph("sub:r"), predicate=iri(f"{EX}age"), object=ph("sub:a")),
            ],
            placeholders=[Placeholder(id="sub:r", types=[PlaceholderKind.INTRODUCED_RESOURCE])],
        )
        assertion = [t("sub:r", f"{EX}name", "Ann"), t("sub:r", f"{EX}age", "40")]
        fields = match_template(template, assertion)
        assert not any(f.is_main_entity for f in fields)
        assert [f.statement_id for f in fields] == ["st1", "st2"]

    def test_doi_display_whitespace_removed(self):
        template = make_template([
            StatementPattern(id="st1", subject=ph("sub:p"), predicate=iri(f"{EX}title"), object=ph("sub:t")),
            StatementPattern(id="st2", subject=ph("sub:p"), predicate=iri(f"{EX}year"), object=ph("sub:y")),
        ])
        doi = "https://doi.org/10.1/x"
        fields = match_template(
            template,
            [t(doi, f"{EX}title", "T"), t(doi, f"{EX}year", "2020")],
            labels={doi: "10.1 / x"},
        )
        assert fields[0].values[0].display == "10.1/x"


class TestConstraints:
    """Test restricted choices, CREATOR and grouped statements."""

    def test_restricted_choice_rejects_other_values(self):
        template = make_template(
            [StatementPattern(id="st1", subject=iri(f"{EX}x"), predicate=iri(f"{EX}color"), object=ph("sub:c"), repeatable=True)],
            placeholders=[
                Placeholder(
                    id="sub:c",
                    types=[PlaceholderKind.RESTRICTED_CHOICE],
                    possible_values=[f"{EX}red", f"{EX}blue"],
                )
            ],
        )
        assertion = [t(f"{EX}x", f"{EX}color", f"{EX}red"), t(f"{EX}x", f"{EX}color", f"{EX}green")]
        fields = match_template(template, assertion)
        color = field_for(fields, "st1")
        assert [v.raw for v in color.values] == [f"{EX}red"]
        assert [f.values[0].raw for f in fields if f.unmatched] == [f"{EX}green"]

    def test_creator_needs_orcid_subject(self):
        template = make_template(
            [StatementPattern(id="st1", subject=Term.creator(), predicate=iri(f"{EX}endorses"), object=ph("sub:o"))]
        )
        orcid = "https://orcid.org/0000-0001-2345-6789"
        assertion = [t(f"{EX}someone", f"{EX}endorses", f"{EX}a"), t(orcid, f"{EX}endorses", f"{EX}b")]
        fields = match_template(template, assertion)
        assert [v.subject for v in field_for(fields, "st1").values] == [orcid]

    def _grouped_template(self, optional: bool = False) -> Template:
        return make_template(
            [
                StatementPattern(id="st1", subject=ph("sub:doc"), predicate=iri(f"{EX}about"), object=ph("sub:r")),
                StatementPattern(id="st2", subject=ph("sub:r"), predicate=iri(f"{EX}p1"), object=lit("v1"), grouped=True),
                StatementPattern(id="st3", subject=ph("sub:r"), predicate=iri(f"{EX}p2"), object=lit("v2"), grouped=True),
            ],
            groups=[GroupedStatement(id="g1", statement_ids=["st2", "st3"], optional=optional)],
            order=["st1", "g1"],
        )

    def test_group_partially_satisfied_is_rejected(self):
        assertion = [t(f"{EX}d", f"{EX}about", f"{EX}R1"), t(f"{EX}R1", f"{EX}p1", "v1")]
        fields = match_template(self._grouped_template(), assertion)
        assert not any(f.statement_id == "st1" for f in fields)

    def test_group_fully_satisfied(self):
        assertion = [
            t(f"{EX}d", f"{EX}about", f"{EX}R1"),
            t(f"{EX}R1", f"{EX}p1", "v1"),
            t(f"{EX}R1", f"{EX}p2", "v2"),
        ]
        fields = match_template(self._grouped_template(), assertion)
        assert [v.raw for v in field_for(fields, "st1").values] == [f"{EX}R1"]
        # Group members are constraints only, never fields of their own
        assert not any(f.statement_id in ("st2", "st3") for f in fields)

    def test_optional_group_absent_is_accepted(self):
        assertion = [t(f"{EX}d", f"{EX}about", f"{EX}R1")]
        fields = match_template(self._grouped_template(optional=True), assertion)
        assert [v.raw for v in field_for(fields, "st1").values] == [f"{EX}R1"]

    def test_optional_group_half_present_is_rejected(self):
        assertion = [t(f"{EX}d", f"{EX}about", f"{EX}R1"), t(f"{EX}R1", f"{EX}p2", "v2")]
        fields = match_template(self._grouped_template(optional=True), assertion)
        assert not any(f.statement_id == "st1" for f in fields)


class TestFieldsAndLabels:
    """Test subject fields, unmatched triples, local references and decoding."""

    def test_subject_field_for_declared_placeholder(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:org"), predicate=iri(f"{EX}name"), object=ph("sub:n"))],
            placeholders=[Placeholder(id="sub:org", types=[PlaceholderKind.EXTERNAL_URI], label="Organization")],
        )
        fields = match_template(template, [t(f"{EX}acme", f"{EX}name", "Acme")])
        subject = fields[0]
        assert subject.is_subject_field
        assert subject.statement_id == "st1-subject"
        assert subject.label == "Organization"
        assert subject.values[0].raw == f"{EX}acme"

    def test_unmatched_triples_get_heuristic_labels(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(f"{EX}p"), object=ph("sub:o"))]
        )
        fields = match_template(template, [t(f"{EX}a", f"{EX}hasAuthor", "Ann")])
        assert len(fields) == 1
        assert fields[0].unmatched
        assert fields[0].label == "Has Author"
        assert fields[0].values[0].display == "Ann"

    def test_resolved_label_beats_heuristic(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(f"{EX}hasAuthor"), object=ph("sub:o"))]
        )
        info = LabelInfo(label="author", description="creator of a work")
        fields = match_template(template, [t(f"{EX}a", f"{EX}hasAuthor", f"{EX}ann")], labels={f"{EX}hasAuthor": info, f"{EX}ann": "Ann"})
        assert fields[0].label == info
        assert fields[0].values[0].display == "Ann"

    def test_local_only_fields_dropped(self):
        template = make_template(
            [StatementPattern(id="st1", subject=iri(f"{EX}x"), predicate=iri(f"{EX}p"), object=ph("sub:o"))]
        )
        fields = match_template(template, [t(f"{EX}x", f"{EX}p", "sub:internal"), t(f"{EX}y", f"{EX}q", "sub:other")])
        assert fields == []

    def test_auto_escape_decoded(self):
        template = make_template(
            [StatementPattern(id="st1", subject=iri(f"{EX}x"), predicate=iri(f"{EX}see"), object=ph("sub:link"))],
            placeholders=[
                Placeholder(id="sub:link", types=[PlaceholderKind.AUTO_ESCAPE_URI], prefix="http://x.org/r/")
            ],
        )
        fields = match_template(template, [t(f"{EX}x", f"{EX}see", "http://x.org/r/hello%20world")])
        assert fields[0].is_decoded_uri
        assert fields[0].values[0].display == "hello world"
        assert fields[0].values[0].raw == "http://x.org/r/hello%20world"

    def test_plus_decodes_to_space(self):
        template = make_template(
            [StatementPattern(id="st1", subject=iri(f"{EX}x"), predicate=iri(f"{EX}see"), object=ph("sub:link"))],
            placeholders=[
                Placeholder(id="sub:link", types=[PlaceholderKind.AUTO_ESCAPE_URI], prefix="http://x.org/r/")
            ],
        )
        fields = match_template(template, [t(f"{EX}x", f"{EX}see", "http://x.org/r/a+b")])
        assert fields[0].values[0].display == "a b"

    def test_empty_assertion(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(f"{EX}p"), object=ph("sub:o"))]
        )
        assert match_template(template, []) == []


class TestAsyncMatch:
    """Test label resolution before matching."""

    def test_resolver_labels_used(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(CITO_CITES), object=ph("sub:o"))]
        )
        resolver = StaticLabelResolver({CITO_CITES: "cites", CITED_ONE: "Paper One"})
        fields = asyncio.run(amatch_template(template, [t(ARTICLE, CITO_CITES, CITED_ONE)], resolver))
        assert fields[0].label == "cites"
        assert fields[0].values[0].display == "Paper One"

    def test_extra_labels_override_resolver(self):
        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(DCT_TITLE), object=ph("sub:o"))]
        )
        resolver = StaticLabelResolver({DCT_TITLE: "title"})
        fields = asyncio.run(
            amatch_template(template, [t(ARTICLE, DCT_TITLE, "T")], resolver, extra_labels={DCT_TITLE: "Headline"})
        )
        assert fields[0].label == "Headline"

    def test_failing_resolver_falls_back(self):
        """A resolver that raises leaves raw values and heuristic predicate labels."""

        class Unreachable:
            async def resolve_batch(self, iris):
                raise RuntimeError("network down")

        template = make_template(
            [StatementPattern(id="st1", subject=ph("sub:s"), predicate=iri(CITO_CITES), object=ph("sub:o"))]
        )
        fields = asyncio.run(amatch_template(template, [t(ARTICLE, CITO_CITES, CITED_ONE)], Unreachable()))
        assert fields[0].label == simple_label(CITO_CITES)
        assert fields[0].values[0].display == CITED_ONE

    def test_collect_iris(self):
        triples = [t(ARTICLE, CITO_CITES, CITED_ONE), t(ARTICLE, DCT_TITLE, "text")]
        assert collect_iris(triples) == [CITO_CITES, ARTICLE, CITED_ONE, DCT_TITLE]

    def test_simple_label(self):
        assert simple_label(DCT_TITLE) == "title"
