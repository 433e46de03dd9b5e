"""Shared test fixtures for nanopub-view."""

import tempfile
from pathlib import Path

import pytest

PREFIXES = """\
@prefix rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .
@prefix dct: <http://purl.org/dc/terms/> .
@prefix np: <http://www.nanopub.org/nschema#> .
@prefix nt: <https://w3id.org/np/o/ntemplate/> .
@prefix prov: <http://www.w3.org/ns/prov#> .
@prefix foaf: <http://xmlns.com/foaf/0.1/> .
@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .
@prefix cito: <http://purl.org/spar/cito/> .
@prefix orcid: <https://orcid.org/> .
@prefix ex: <http://example.org/> .
"""

ARTICLE = "https://doi.org/10.1234/abc"
CITED_ONE = "https://doi.org/10.5555/one"
CITED_TWO = "https://doi.org/10.5555/two"
AUTHOR = "https://orcid.org/0000-0002-1825-0097"
EX = "http://example.org/"
CITO_CITES = "http://purl.org/spar/cito/cites"
DCT_TITLE = "http://purl.org/dc/terms/title"
DCT_SUBJECT = "http://purl.org/dc/terms/subject"


@pytest.fixture
def nanopub_text() -> str:
    """Slash-style nanopublication created from the citation template."""
    return (
        "@prefix this: <https://w3id.org/np/RAexample1> .\n"
        "@prefix sub: <https://w3id.org/np/RAexample1/> .\n"
        + PREFIXES
        + """
sub:Head {
  this: np:hasAssertion sub:assertion ;
    np:hasProvenance sub:provenance ;
    np:hasPublicationInfo sub:pubinfo ;
    a np:Nanopublication .
}

sub:assertion {
  <https://doi.org/10.1234/abc> dct:title "A study; of things. Really" ;
    cito:cites <https://doi.org/10.5555/one>, <https://doi.org/10.5555/two> ;
    dct:subject ex:Biology .
}

sub:provenance {
  sub:assertion prov:wasAttributedTo orcid:0000-0002-1825-0097 .
}

sub:pubinfo {
  this: dct:created "2024-03-05T10:00:00Z"^^xsd:dateTime ;
    dct:creator orcid:0000-0002-1825-0097 ;
    dct:license <https://creativecommons.org/licenses/by/4.0/> ;
    nt:wasCreatedFromTemplate <http://purl.org/np/RAtemplate1> .
  orcid:0000-0002-1825-0097 foaf:name "Jane Doe" .
}
"""
    )


@pytest.fixture
def hash_nanopub_text() -> str:
    """Hash-style nanopublication without a template reference."""
    return (
        "@prefix this: <http://example.org/np1> .\n"
        "@prefix sub: <http://example.org/np1#> .\n"
        + PREFIXES
        + """
<http://example.org/np1#Head> {
  this: np:hasAssertion <http://example.org/np1#assertion> .
}

<http://example.org/np1#assertion> {
  ex:thing a ex:Widget .
}

<http://example.org/np1#provenance> {
  <http://example.org/np1#assertion> prov:wasDerivedFrom ex:source .
}

<http://example.org/np1#pubinfo> {
  this: rdfs:label "A widget" ;
    dct:created "2023-11-20"^^xsd:date .
}
"""
    )


@pytest.fixture
def template_text() -> str:
    """Citation template: one main article, a repeatable and an optional statement."""
    return (
        "@prefix this: <https://w3id.org/np/RAtemplate1> .\n"
        "@prefix sub: <https://w3id.org/np/RAtemplate1/> .\n"
        + PREFIXES
        + """
sub:Head {
  this: np:hasAssertion sub:assertion ;
    np:hasProvenance sub:provenance ;
    np:hasPublicationInfo sub:pubinfo .
}

sub:assertion {
  sub:assertion a nt:AssertionTemplate ;
    rdfs:label "Declaring citations" ;
    dct:description "Links an article to the works it cites." ;
    nt:hasStatement sub:st1, sub:st2, sub:st3 .

  sub:st1 a rdf:Statement ;
    rdf:subject sub:article ;
    rdf:predicate dct:title ;
    rdf:object sub:title .

  sub:st2 a rdf:Statement, nt:RepeatableStatement ;
    rdf:subject sub:article ;
    rdf:predicate cito:cites ;
    rdf:object sub:cited .

  sub:st3 a rdf:Statement, nt:OptionalStatement ;
    rdf:subject sub:article ;
    rdf:predicate dct:subject ;
    rdf:object sub:topic .

  sub:article a nt:ExternalUriPlaceholder ;
    rdfs:label "Article" .

  sub:title a nt:LiteralPlaceholder ;
    rdfs:label "Title" .

  sub:cited a nt:ExternalUriPlaceholder ;
    rdfs:label "Cited work" .

  sub:topic a nt:RestrictedChoicePlaceholder ;
    rdfs:label "Topic" ;
    nt:possibleValue ex:Biology, ex:Physics .

  cito:cites rdfs:label "cites" .
}

sub:provenance {
  sub:assertion prov:wasAttributedTo orcid:0000-0002-1825-0097 .
}

sub:pubinfo {
  this: nt:hasTag "Citations" .
  ex:Biology rdfs:label "Biology" .
}
"""
    )


@pytest.fixture
def tmp_dir():
    """Temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)
