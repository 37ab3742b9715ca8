"""A small people directory served as the ``person.list`` operation.

Used by ``sparqlgate serve --demo`` and by the test suite.  Carol's age
is a string, so her row fails ``PersonShape`` and is left out of every
answer.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from rdflib import Graph, Namespace
from rdflib.namespace import RDF

from sparqlgate.builder import OutputSpec, QueryBuilder
from sparqlgate.engines import EngineProvider
from sparqlgate.models import QueryDef, QueryRegistry
from sparqlgate.terms import BindingRow, Quad, v
from sparqlgate.validation import ShaclValidator

__all__ = [
    "Person",
    "PersonListParams",
    "build_person_list",
    "demo_graph",
    "demo_provider",
    "demo_validator",
    "registry",
]

EX = Namespace("http://example.org/schema#")
PEOPLE = Namespace("http://example.org/people/")
PERSON_SHAPE = "http://example.org/shapes#PersonShape"

SHAPES_TTL = """\
@prefix sh: <http://www.w3.org/ns/shacl#> .
@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .
@prefix ex: <http://example.org/schema#> .

<http://example.org/shapes#PersonShape> a sh:NodeShape ;
    sh:property [ sh:path ex:name ; sh:datatype xsd:string ; sh:minCount 1 ; sh:maxCount 1 ] ;
    sh:property [ sh:path ex:age ; sh:datatype xsd:integer ; sh:maxCount 1 ] .
"""

DATA_TTL = """\
@prefix ex: <http://example.org/schema#> .
@prefix people: <http://example.org/people/> .

people:alice a ex:Person ; ex:name "Alice" ; ex:age 34 .
people:bob a ex:Person ; ex:name "Bob" .
people:carol a ex:Person ; ex:name "Carol" ; ex:age "unknown" .
people:dave a ex:Person ; ex:name "Dave" ; ex:age 51 .
"""


class PersonListParams(BaseModel):
    limit: int = Field(10, ge=1, le=100, description="Maximum rows to fetch")
    min_age: Optional[int] = Field(None, ge=0, description="Only people at least this old")


class Person(BaseModel):
    id: str
    name: str
    age: Optional[int] = None


def person_quads(row: BindingRow) -> list[Quad]:
    subject = row["id"]
    quads = [Quad(subject, RDF.type, EX.Person)]
    if "name" in row:
        quads.append(Quad(subject, EX.name, row["name"]))
    if "age" in row:
        quads.append(Quad(subject, EX.age, row["age"]))
    return quads


def person_from_row(row: BindingRow) -> Person:
    age = row.get("age")
    return Person(
        id=str(row["id"]),
        name=str(row["name"]),
        age=age.toPython() if age is not None else None,
    )


def build_person_list(params: PersonListParams, ctx) -> QueryBuilder:
    qb = (
        QueryBuilder()
        .prefix("ex", str(EX))
        .select_vars(["id", "name", "age"])
        .where_triple(v("id"), RDF.type, EX.Person)
        .where_triple(v("id"), EX.name, v("name"))
        .optional_triple(v("id"), EX.age, v("age"))
    )
    if params.min_age is not None:
        qb.filter(f"?age >= {int(params.min_age)}")
    return qb.limit(params.limit).set_output_spec(OutputSpec(
        shape=PERSON_SHAPE,
        focus_node_var="id",
        build_quads=person_quads,
        map_to_object=person_from_row,
    ))


registry: QueryRegistry = {
    "person.list": QueryDef(
        params=PersonListParams,
        result_item=Person,
        build=build_person_list,
        description="List people with their names and ages",
    ),
}


def demo_graph() -> Graph:
    graph = Graph()
    graph.parse(data=DATA_TTL, format="turtle")
    return graph


def demo_validator() -> ShaclValidator:
    return ShaclValidator(SHAPES_TTL)


def demo_provider() -> EngineProvider:
    """Graph-engine provider over :data:`DATA_TTL`."""
    return EngineProvider(mode="graph", graph=demo_graph())
