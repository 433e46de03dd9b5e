"""Structural matching of assertion graphs against templates."""

from nanopub_view.match.labels import (
    CachingLabelResolver,
    LabelResolver,
    StaticLabelResolver,
    simple_label,
    uri_label,
)
from nanopub_view.match.matcher import amatch_template, match_template
from nanopub_view.match.models import FieldValue, MatchedField, PlaceholderBindings

__all__ = [
    "CachingLabelResolver",
    "FieldValue",
    "LabelResolver",
    "MatchedField",
    "PlaceholderBindings",
    "StaticLabelResolver",
    "amatch_template",
    "match_template",
    "simple_label",
    "uri_label",
]
