"""Tests for QueryBuilder, its AST, and the text generator."""

from __future__ import annotations

import pytest
from rdflib import BNode, Literal, Variable

from sparqlgate.builder import OutputSpec, QueryBuilder
from sparqlgate.errors import UnsupportedTermKind
from sparqlgate.generator import SparqlGenerator
from sparqlgate.query_ast import (
    BgpPattern,
    BlankNodeNode,
    FilterPattern,
    GroupPattern,
    IriNode,
    LiteralNode,
    OptionalPattern,
    SelectQuery,
    ServicePattern,
    TriplePattern,
    UnionPattern,
)
from sparqlgate.terms import XSD, iri, lit_str, lit_typed, v

EX = "http://example.org/schema#"
RDF_TYPE = "http://www.w3.org/1999/02/22-rdf-syntax-ns#type"


def _person_query() -> QueryBuilder:
    return (
        QueryBuilder()
        .prefix("ex", EX)
        .select_vars([v("id"), v("name"), v("age")])
        .where_triple(v("id"), iri(RDF_TYPE), iri(f"{EX}Person"))
        .where_triple(v("id"), iri(f"{EX}name"), v("name"))
        .where_triple(v("id"), iri(f"{EX}age"), v("age"))
    )


class TestFluentApi:
    def test_mutators_return_same_builder(self):
        qb = QueryBuilder()
        assert qb.prefix("ex", EX) is qb
        assert qb.select_vars(["id"]) is qb
        assert qb.where_triple(v("id"), iri(f"{EX}p"), v("o")) is qb
        assert qb.optional_triple(v("id"), iri(f"{EX}q"), v("x")) is qb
        assert qb.filter("?x > 1") is qb
        assert qb.limit(5) is qb

    def test_select_vars_accepts_names(self):
        qb = QueryBuilder().select_vars(["id", "?name", v("age")])
        assert qb.variables == [Variable("id"), Variable("name"), Variable("age")]

    def test_output_spec_unset_then_set(self):
        qb = QueryBuilder()
        assert qb.get_output_spec() is None

        spec = OutputSpec(
            shape="http://example.org/shapes#S",
            focus_node_var="id",
            build_quads=lambda row: [],
            map_to_object=lambda row: row,
        )
        qb.set_output_spec(spec)
        assert qb.get_output_spec() is spec


class TestToAst:
    def test_pattern_order_matches_insertion_order(self):
        qb = (
            QueryBuilder()
            .where_triple(v("s"), iri(f"{EX}a"), v("o1"))
            .optional_triple(v("s"), iri(f"{EX}b"), v("o2"))
            .where_triple(v("s"), iri(f"{EX}c"), v("o3"))
            .optional_triple(v("s"), iri(f"{EX}d"), v("o4"))
        )
        where = qb.to_ast().where

        assert [type(p) for p in where] == [
            BgpPattern, OptionalPattern, BgpPattern, OptionalPattern,
        ]
        predicates = []
        for pattern in where:
            bgp = pattern.patterns[0] if isinstance(pattern, OptionalPattern) else pattern
            predicates.append(bgp.triples[0].predicate.value)
        assert predicates == [f"{EX}a", f"{EX}b", f"{EX}c", f"{EX}d"]

    def test_filters_follow_patterns_and_limit_is_copied(self):
        ast = (
            QueryBuilder()
            .filter("?age > 18")
            .where_triple(v("s"), iri(f"{EX}age"), v("age"))
            .limit(7)
            .to_ast()
        )
        assert isinstance(ast.where[0], BgpPattern)
        assert ast.where[-1] == FilterPattern(expression="?age > 18")
        assert ast.limit == 7

    def test_to_ast_is_deterministic(self):
        qb = _person_query()
        assert qb.to_ast() == qb.to_ast()

    def test_term_translation(self):
        blank = BNode("n1")
        qb = (
            QueryBuilder()
            .where_triple(blank, iri(f"{EX}label"), lit_str("chat", "fr"))
            .where_triple(v("s"), iri(f"{EX}count"), lit_typed(3, XSD.integer))
            .where_triple(v("s"), iri(f"{EX}note"), Literal("plain"))
        )
        first, second, third = (p.triples[0] for p in qb.to_ast().where)

        assert first.subject == BlankNodeNode(label="n1")
        assert first.object == LiteralNode(value="chat", language="fr", datatype=None)
        assert second.subject == Variable("s")
        assert second.object == LiteralNode(
            value="3", language="", datatype=IriNode(str(XSD.integer)),
        )
        assert third.object.language == ""
        assert third.object.datatype is None

    def test_unsupported_term_kind(self):
        qb = QueryBuilder().where_triple(v("s"), iri(f"{EX}p"), 42)
        with pytest.raises(UnsupportedTermKind) as excinfo:
            qb.to_ast()
        assert excinfo.value.kind == "int"
        assert "Unsupported term type: int" in str(excinfo.value)


class TestQueryText:
    def test_round_trip_without_and_with_limit(self):
        qb = _person_query()
        lines = qb.to_query_text().splitlines()

        assert f"PREFIX ex: <{EX}>" in lines
        assert "SELECT ?id ?name ?age WHERE {" in lines
        assert not any(line.startswith("LIMIT") for line in lines)

        qb.limit(10)
        assert "LIMIT 10" in qb.to_query_text().splitlines()

    def test_triples_are_compacted(self):
        text = str(_person_query())
        assert "  ?id ex:name ?name ." in text
        assert f"  ?id <{RDF_TYPE}> ex:Person ." in text

    def test_optional_and_filter_blocks(self):
        qb = (
            QueryBuilder()
            .prefix("ex", EX)
            .select_vars(["id"])
            .where_triple(v("id"), iri(f"{EX}name"), v("name"))
            .optional_triple(v("id"), iri(f"{EX}age"), v("age"))
            .filter("?age >= 18")
        )
        assert qb.to_query_text().splitlines() == [
            f"PREFIX ex: <{EX}>",
            "SELECT ?id WHERE {",
            "  ?id ex:name ?name .",
            "  OPTIONAL {",
            "    ?id ex:age ?age .",
            "  }",
            "  FILTER(?age >= 18)",
            "}",
        ]

    def test_select_star_without_projection(self):
        text = QueryBuilder().where_triple(v("s"), v("p"), v("o")).to_query_text()
        assert text.splitlines()[0] == "SELECT * WHERE {"

    def test_literal_rendering(self):
        gen = SparqlGenerator()
        prefixes = {"xsd": "http://www.w3.org/2001/XMLSchema#"}

        assert gen.term(LiteralNode('say "hi"', "en"), {}) == '"say \\"hi\\""@en'
        assert gen.term(LiteralNode("a\nb"), {}) == '"a\\nb"'
        assert gen.term(LiteralNode("x", datatype=IriNode(str(XSD.string))), {}) == '"x"'
        assert gen.term(LiteralNode("5", datatype=IriNode(str(XSD.int))), prefixes) == '"5"^^xsd:int'
        assert gen.term(LiteralNode("5", datatype=IriNode(str(XSD.int))), {}) == (
            '"5"^^<http://www.w3.org/2001/XMLSchema#int>'
        )

    def test_iri_compaction_uses_longest_prefix(self):
        prefixes = {"ex": "http://example.org/", "exs": "http://example.org/schema#"}
        assert SparqlGenerator.iri(f"{EX}name", prefixes) == "exs:name"
        assert SparqlGenerator.iri("http://example.org/a/b", prefixes) == "<http://example.org/a/b>"
        assert SparqlGenerator.iri("http://other.org/x", prefixes) == "<http://other.org/x>"

    def test_group_union_and_service(self):
        p = IriNode(f"{EX}p")
        bgp = BgpPattern((TriplePattern(Variable("s"), p, Variable("o")),))
        query = SelectQuery(
            variables=[Variable("s")],
            where=[
                GroupPattern((bgp,)),
                UnionPattern((bgp, bgp)),
                ServicePattern("http://remote.example/sparql", silent=True),
            ],
            prefixes={"ex": EX},
        )
        lines = SparqlGenerator().stringify(query).splitlines()

        assert lines.count("  {") == 3
        assert "  UNION" in lines
        assert "  SERVICE SILENT <http://remote.example/sparql> { }" in lines

    def test_generator_is_injectable(self):
        qb = QueryBuilder(generator=SparqlGenerator(indent="\t"))
        qb.where_triple(v("s"), iri(f"{EX}p"), v("o"))
        assert f"\t?s <{EX}p> ?o ." in qb.to_query_text()

    def test_unknown_ast_term_is_rejected(self):
        with pytest.raises(UnsupportedTermKind):
            SparqlGenerator().term(3.14, {})
