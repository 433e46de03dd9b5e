"""Pydantic models for matcher output."""

from pydantic import BaseModel, Field

from nanopub_view.template.models import Label


class FieldValue(BaseModel):
    """One value of a field: the raw IRI/literal and what to show for it."""

    raw: str
    display: Label
    subject: str | None = None


class MatchedField(BaseModel):
    """A labelled group of values, ready for the rendering layer."""

    statement_id: str | None = None
    placeholder_id: str | None = None
    label: Label
    predicate_uri: str | None = None
    values: list[FieldValue] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    repeatable: bool = False
    optional: bool = False
    is_main_entity: bool = False
    is_subject_field: bool = False
    is_decoded_uri: bool = False
    unmatched: bool = False


class PlaceholderBindings:
    """Concrete values bound to placeholders during one matching pass.

    Sets only grow. A placeholder with no values (or an empty set) is
    still free and may bind to any candidate.
    """

    def __init__(self) -> None:
        self._values: dict[str, set[str]] = {}

    def get(self, placeholder_id: str) -> set[str]:
        return self._values.get(placeholder_id, set())

    def is_bound(self, placeholder_id: str) -> bool:
        return bool(self._values.get(placeholder_id))

    def allows(self, placeholder_id: str, value: str) -> bool:
        """True when the placeholder is free or ``value`` is already bound to it."""
        return not self.is_bound(placeholder_id) or value in self._values[placeholder_id]

    def bind(self, placeholder_id: str, values: set[str] | list[str]) -> None:
        self._values.setdefault(placeholder_id, set()).update(values)

    def as_dict(self) -> dict[str, set[str]]:
        return {k: set(v) for k, v in self._values.items()}
