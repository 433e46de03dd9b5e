"""Template documents: statement patterns, placeholders and labels."""

from nanopub_view.template.models import (
    GroupedStatement,
    LabelInfo,
    Placeholder,
    PlaceholderKind,
    StatementPattern,
    Template,
    Term,
)
from nanopub_view.template.parser import parse_template

__all__ = [
    "GroupedStatement",
    "LabelInfo",
    "Placeholder",
    "PlaceholderKind",
    "StatementPattern",
    "Template",
    "Term",
    "parse_template",
]
