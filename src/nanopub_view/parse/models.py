"""Pydantic models for parsed nanopublication graphs."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDF_TYPE = f"{RDF_NS}type"

# Template-local references (sub:...) are never expanded
LOCAL_PREFIX = "sub:"
CREATOR = "CREATOR"


def is_local_ref(value: str) -> bool:
    """True for template-local references such as ``sub:paper``."""
    return value.startswith(LOCAL_PREFIX)


def is_absolute_iri(value: str) -> bool:
    return value.startswith(("http://", "https://"))


class GraphName(str, Enum):
    """The three named graphs of a nanopublication."""

    ASSERTION = "assertion"
    PROVENANCE = "provenance"
    PUBINFO = "pubinfo"


class Triple(BaseModel):
    """A resolved statement. Equality is structural on the three fields."""

    model_config = ConfigDict(frozen=True)

    subject: str
    predicate: str
    object: str


class NanopubGraphs(BaseModel):
    """Triples of each named graph, in extraction order."""

    assertion: list[Triple] = Field(default_factory=list)
    provenance: list[Triple] = Field(default_factory=list)
    pubinfo: list[Triple] = Field(default_factory=list)

    def get(self, name: GraphName) -> list[Triple]:
        return getattr(self, name.value)
