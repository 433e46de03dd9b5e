"""Read label files and documents, write nanopublication views."""

import json
import logging
from pathlib import Path

import yaml

from nanopub_view.nanopub import NanopubView
from nanopub_view.template.models import Label, LabelInfo

logger = logging.getLogger(__name__)


def read_text(path: Path) -> str:
    """Read a TriG document as UTF-8 text."""
    with open(path, encoding="utf-8") as f:
        return f.read()


def read_labels(path: Path) -> dict[str, Label]:
    """Read an IRI-to-label mapping from YAML.

    Values are either plain strings or mappings with ``label`` and an
    optional ``description``. A missing or empty file gives an empty dict.
    """
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Label file {path} must contain a mapping of IRI to label")

    labels: dict[str, Label] = {}
    for iri, value in data.items():
        if isinstance(value, dict):
            labels[str(iri)] = LabelInfo.model_validate(value)
        elif value is not None:
            labels[str(iri)] = str(value)
    logger.debug(f"Loaded {len(labels)} labels from {path}")
    return labels


def dump_view(view: NanopubView, fmt: str) -> str:
    """Serialize a view as ``json`` or ``yaml`` text."""
    data = view.model_dump(mode="json")
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)
    if fmt == "yaml":
        return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported output format: {fmt!r}")


def write_view(view: NanopubView, path: Path, fmt: str = "json") -> None:
    """Write a view to disk as JSON or YAML."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = dump_view(view, fmt)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info(f"Wrote {len(view.structured_data)} fields to {path}")
