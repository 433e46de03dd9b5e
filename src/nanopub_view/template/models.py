"""Pydantic models for nanopublication templates.

A template describes the expected shape of an assertion graph as an ordered
list of statement patterns. Pattern positions hold concrete IRIs, literals,
placeholders (``sub:...`` slots filled per document) or the ``CREATOR``
sentinel.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from nanopub_view.parse.models import CREATOR


class PlaceholderKind(str, Enum):
    """Placeholder and resource classes from the ntemplate vocabulary."""

    EXTERNAL_URI = "ExternalUriPlaceholder"
    AUTO_ESCAPE_URI = "AutoEscapeUriPlaceholder"
    RESTRICTED_CHOICE = "RestrictedChoicePlaceholder"
    LONG_LITERAL = "LongLiteralPlaceholder"
    INTRODUCED_RESOURCE = "IntroducedResource"
    LOCAL_RESOURCE = "LocalResource"
    URI = "UriPlaceholder"
    TRUSTY_URI = "TrustyUriPlaceholder"
    LITERAL = "LiteralPlaceholder"
    GUIDED_CHOICE = "GuidedChoicePlaceholder"
    AGENT = "AgentPlaceholder"
    VALUE = "ValuePlaceholder"
    EMBEDDED_RESOURCE = "EmbeddedResource"


RESOURCE_ONLY_KINDS = frozenset({PlaceholderKind.INTRODUCED_RESOURCE, PlaceholderKind.LOCAL_RESOURCE})


class LabelInfo(BaseModel):
    """A label with an optional description (e.g. from Wikidata)."""

    label: str
    description: str | None = None


Label = str | LabelInfo

TermKind = Literal["iri", "placeholder", "literal", "creator"]


class Term(BaseModel):
    """One position of a statement pattern."""

    kind: TermKind
    value: str

    @property
    def is_placeholder(self) -> bool:
        return self.kind == "placeholder"

    @property
    def is_creator(self) -> bool:
        return self.kind == "creator"

    @classmethod
    def creator(cls) -> "Term":
        return cls(kind="creator", value=CREATOR)


class StatementPattern(BaseModel):
    """A (subject, predicate, object) rule of the template."""

    id: str
    subject: Term
    predicate: Term
    object: Term
    optional: bool = False
    repeatable: bool = False
    grouped: bool = False


class Placeholder(BaseModel):
    """A slot declared by the template."""

    id: str
    types: list[PlaceholderKind] = Field(default_factory=list)
    label: str = ""
    prefix: str | None = None
    possible_values: list[str] = Field(default_factory=list)

    def has_type(self, kind: PlaceholderKind) -> bool:
        return kind in self.types

    @property
    def is_resource_only(self) -> bool:
        """True when every declared type is IntroducedResource or LocalResource."""
        return bool(self.types) and all(t in RESOURCE_ONLY_KINDS for t in self.types)


class GroupedStatement(BaseModel):
    """Statements that must be satisfied together by one resource."""

    id: str
    statement_ids: list[str] = Field(default_factory=list)
    optional: bool = False


class Template(BaseModel):
    """Parsed template. An empty ``statement_order`` means "no template"."""

    statements: dict[str, StatementPattern] = Field(default_factory=dict)
    statement_order: list[str] = Field(default_factory=list)
    placeholders: dict[str, Placeholder] = Field(default_factory=dict)
    labels: dict[str, Label] = Field(default_factory=dict)
    grouped_statements: dict[str, GroupedStatement] = Field(default_factory=dict)
    title: str | None = None
    description: str | None = None
    tag: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.statement_order

    def ordered_statements(self) -> list[StatementPattern]:
        """Statements in template order, silently skipping ids that were never extracted."""
        return [self.statements[sid] for sid in self.statement_order if sid in self.statements]

    def group_member_ids(self) -> set[str]:
        return {sid for group in self.grouped_statements.values() for sid in group.statement_ids}
