"""Label resolution for IRIs.

The matcher never fetches anything itself. It receives a resolver that
answers one batch of IRIs per document. Remote lookups (Wikidata, content
negotiation, ...) live outside this package and plug in through the
``LabelResolver`` protocol; the resolvers here cover in-memory labels and
caching with de-duplication of concurrent requests.
"""

import asyncio
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Protocol

from nanopub_view.template.models import Label

logger = logging.getLogger(__name__)


class LabelResolver(Protocol):
    """Anything that can look up labels for a batch of IRIs."""

    async def resolve_batch(self, iris: Iterable[str]) -> dict[str, Label | None]:
        """Return a label (text or LabelInfo) or None for every requested IRI."""
        ...


def _last_segment(uri: str) -> str:
    parts = re.split(r"[#/]", uri)
    label = parts[-1]
    if not label and len(parts) > 1:
        label = parts[-2]
    return label


def simple_label(uri: str) -> str:
    """Field label from a predicate's local name: ``hasAuthor`` -> ``Has Author``."""
    label = re.sub(r"([A-Z])", r" \1", _last_segment(uri))
    return re.sub(r"^has", "Has", label).strip()


def uri_label(uri: str) -> str:
    """Readable fallback label from an IRI's path segments."""
    label = re.sub(r"([A-Z])", r" \1", _last_segment(uri))
    label = re.sub(r"^has", "Has", label)
    label = re.sub(r"[_-]", " ", label)
    label = re.sub(r"\s+", " ", label.strip())
    return label[:1].upper() + label[1:]


class StaticLabelResolver:
    """Resolve labels from a fixed mapping (e.g. a YAML labels file)."""

    def __init__(self, labels: Mapping[str, Label] | None = None) -> None:
        self.labels = dict(labels or {})

    async def resolve_batch(self, iris: Iterable[str]) -> dict[str, Label | None]:
        return {iri: self.labels.get(iri) for iri in iris}


class CachingLabelResolver:
    """Wrap another resolver with a cache and in-flight request sharing.

    The cache lives as long as this object, so the caller decides whether
    it spans one document, a batch of documents or a whole session.
    Lookups that fail or come back empty fall back to ``uri_label`` when
    ``heuristic_fallback`` is set.
    """

    def __init__(self, inner: LabelResolver, heuristic_fallback: bool = True) -> None:
        self.inner = inner
        self.heuristic_fallback = heuristic_fallback
        self._cache: dict[str, Label | None] = {}
        self._pending: dict[str, asyncio.Future] = {}

    async def resolve_batch(self, iris: Iterable[str]) -> dict[str, Label | None]:
        wanted = list(dict.fromkeys(i for i in iris if i))
        missing = [i for i in wanted if i not in self._cache and i not in self._pending]

        if missing:
            task = asyncio.ensure_future(self._lookup(missing))
            for iri in missing:
                self._pending[iri] = task

        waiting = {self._pending[i] for i in wanted if i in self._pending}
        if waiting:
            await asyncio.gather(*waiting, return_exceptions=True)

        return {iri: self._cache.get(iri) for iri in wanted}

    async def _lookup(self, iris: list[str]) -> None:
        try:
            found = await self.inner.resolve_batch(iris)
        except Exception as e:
            logger.warning(f"Label lookup failed for {len(iris)} IRIs: {e}")
            found = {}
        finally:
            for iri in iris:
                self._pending.pop(iri, None)

        for iri in iris:
            label = found.get(iri)
            if not label and self.heuristic_fallback:
                label = uri_label(iri)
            self._cache[iri] = label
        logger.debug(f"Resolved {sum(1 for i in iris if found.get(i))}/{len(iris)} labels")

    def clear_cache(self) -> None:
        self._cache.clear()
        self._pending.clear()
