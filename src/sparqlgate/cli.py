"""Command line interface for :mod:`sparqlgate`."""

import json
from pathlib import Path
from typing import Optional

import click
from rdflib import BNode, Literal, URIRef
from rdflib.namespace import XSD

from .engines import ENGINE_KINDS, EngineProvider, collect_rows

__all__ = [
    "main",
]


@click.group()
@click.version_option()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    r"""sparqlgate - typed SPARQL operations behind a JSON API.

    Run raw queries against an endpoint or local RDF files, list the
    operations of a registry, or serve a registry over HTTP.
    """
    import logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        logging.getLogger("sparqlgate").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s", force=True)


def _cell(term) -> dict:
    """Render a term as a SPARQL JSON results cell."""
    if isinstance(term, URIRef):
        return {"type": "uri", "value": str(term)}
    if isinstance(term, BNode):
        return {"type": "bnode", "value": str(term)}
    cell = {"type": "literal", "value": str(term)}
    if isinstance(term, Literal):
        if term.language:
            cell["xml:lang"] = term.language
        elif term.datatype and term.datatype != XSD.string:
            cell["datatype"] = str(term.datatype)
    return cell


@main.command()
@click.argument("sparql", required=False)
@click.option("--file", "-f", "query_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the query from a file")
@click.option("--endpoint", help="SPARQL endpoint URL")
@click.option("--data", "-d", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="RDF file(s) loaded into the in-memory graph engine")
@click.option(
    "--engine",
    type=click.Choice(["auto", *ENGINE_KINDS]),
    default="auto",
    show_default=True,
    help="Engine serving the query",
)
@click.option("--timeout", type=float, default=30.0, show_default=True,
              help="Endpoint request timeout in seconds")
def query(
    sparql: Optional[str],
    query_file: Optional[str],
    endpoint: Optional[str],
    data: tuple[str, ...],
    engine: str,
    timeout: float,
) -> None:
    """Run a SELECT query and print its rows as JSON.

    Each row maps variable names to SPARQL JSON cells.


    Examples:
      sparqlgate query --endpoint https://dbpedia.org/sparql "SELECT * WHERE { ?s ?p ?o } LIMIT 3"

      sparqlgate query --data people.ttl -f people.rq
    """
    if query_file:
        sparql = Path(query_file).read_text()
    if not sparql:
        raise click.UsageError("Give the query as an argument or with --file")
    if not endpoint and not data:
        raise click.UsageError("Give --endpoint or at least one --data file")

    try:
        with EngineProvider(
            mode=engine,
            endpoint_url=endpoint,
            data_files=data,
            timeout=timeout,
        ) as provider:
            rows = collect_rows(sparql, provider=provider)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    click.echo(json.dumps(
        [{name: _cell(term) for name, term in row.items()} for row in rows],
        indent=2,
    ))


def _resolve_registry(registry: Optional[str], demo: bool):
    from .backend.app import load_registry

    if demo:
        from .demo import registry as demo_registry

        return demo_registry
    if registry:
        return load_registry(registry)
    raise click.UsageError("Give --registry module:attribute or --demo")


@main.command()
@click.option("--registry", "-r", envvar="SPARQLGATE_REGISTRY",
              help="Operation registry as module:attribute")
@click.option("--demo", is_flag=True, help="Use the bundled people registry")
def operations(registry: Optional[str], demo: bool) -> None:
    """List the operations of a registry."""
    ops = _resolve_registry(registry, demo)
    for name in sorted(ops):
        description = ops[name].description
        click.echo(f"{name}\t{description}" if description else name)


@main.command()
@click.option("--registry", "-r", envvar="SPARQLGATE_REGISTRY",
              help="Operation registry as module:attribute")
@click.option("--demo", is_flag=True, help="Serve the bundled people registry over its own data")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=5000, show_default=True, type=int)
@click.option("--debug", is_flag=True, help="Run Flask in debug mode")
def serve(registry: Optional[str], demo: bool, host: str, port: int, debug: bool) -> None:
    """Serve a registry over HTTP (POST /api/query).

    Engines, shapes, and the namespace allow-list come from the
    environment (SPARQLGATE_ENGINE, SPARQL_ENDPOINT, DATA_FILES,
    SHAPES_FILE, ALLOWED_NAMESPACES).
    """
    from .backend.app import create_app
    from .backend.config import Config

    ops = _resolve_registry(registry, demo)
    options = {}
    if demo:
        from .demo import demo_provider, demo_validator

        options = {"provider": demo_provider(), "validator": demo_validator()}

    app = create_app(Config, registry=ops, **options)
    click.echo(f"Serving {len(ops)} operation(s) at http://{host}:{port}/api/query")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
