"""schemagraph CLI tools."""

import json
import platform
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typer import Context, Exit

import schemagraph
from schemagraph.builder.json_graph import validate_import_data
from schemagraph.builder.session import BuilderSession
from schemagraph.builder.storage import FileSnapshotStorage
from schemagraph.exceptions import SchemaGraphError, SerializationError
from schemagraph.schema.catalog import SchemaCatalog, group_schemas_by_folder, load_catalog
from schemagraph.schema.fields import primitive_fields
from schemagraph.schema.relationships import build_schema_relationship_graph, connection_rules_for
from schemagraph.types import ExportOptions
from schemagraph.utilities.logging import configure_logging, get_logger

logger = get_logger("cli")
console = Console()

app = typer.Typer(
    name="schemagraph",
    help="schemagraph CLI",
    add_completion=False,
    no_args_is_help=True,
)

SchemaDir = Annotated[
    Path,
    typer.Argument(help="Directory containing the JSON schema catalog", file_okay=False),
]


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise SerializationError(f"File not found: {path}", path=path) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError.from_exception(e, path=path) from e


def _load(schema_dir: Path) -> SchemaCatalog:
    return load_catalog(schema_dir)


def _fail(error: SchemaGraphError) -> NoReturn:
    logger.debug("Command failed", exc_info=error)
    console.print(f"[bold red]Error:[/bold red] {escape(error.message)}")
    raise Exit(code=1)


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Log level (defaults to SCHEMAGRAPH_LOG_LEVEL)"),
    ] = None,
) -> None:
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")


@app.command()
def version(ctx: Context) -> None:
    """Show version information."""
    if ctx.resilient_parsing:
        return

    info = {
        "schemagraph version": schemagraph.__version__,
        "Python version": platform.python_version(),
        "Platform": platform.platform(),
    }

    g = Table.grid(padding=(0, 1))
    g.add_column(style="bold", justify="left")
    g.add_column(style="cyan", justify="right")
    for k, v in info.items():
        g.add_row(f"{k}:", str(v).replace("\n", " "))
    console.print(g)


@app.command()
def catalog(schema_dir: SchemaDir) -> None:
    """List the schemas of a catalog, grouped by folder."""
    try:
        schemas = _load(schema_dir)
    except SchemaGraphError as e:
        _fail(e)

    table = Table(title=f"{len(schemas)} schemas")
    table.add_column("Group", style="bold")
    table.add_column("Title")
    table.add_column("Path", style="cyan")
    table.add_column("Connections", justify="right")
    for group, infos in sorted(group_schemas_by_folder(schemas).items()):
        for info in infos:
            table.add_row(group, info.title, info.path, str(len(connection_rules_for(info.path, schemas))))
    console.print(table)


@app.command()
def rules(
    schema_dir: SchemaDir,
    schema_path: Annotated[str, typer.Argument(help="Catalog path of the schema")],
    fields: Annotated[
        bool, typer.Option("--fields", help="Also list the primitive input fields")
    ] = False,
) -> None:
    """Show the connection rules of one schema."""
    try:
        schemas = _load(schema_dir)
    except SchemaGraphError as e:
        _fail(e)

    found = schemas.lookup(schema_path)
    if found is None:
        console.print(f"[bold red]Error:[/bold red] Schema not found: {schema_path}")
        raise Exit(code=1)
    key = found[0]

    table = Table(title=f"Connections of {key}")
    table.add_column("Property", style="bold")
    table.add_column("Target", style="cyan")
    table.add_column("Cardinality")
    table.add_column("Required")
    for rule in connection_rules_for(key, schemas):
        table.add_row(rule.property_path, rule.target_schema_path, rule.cardinality.value, "yes" if rule.required else "")
    console.print(table)

    if fields:
        field_table = Table(title=f"Fields of {key}")
        field_table.add_column("Field", style="bold")
        field_table.add_column("Type")
        field_table.add_column("Required")
        field_table.add_column("Description")
        for spec in primitive_fields(key, schemas):
            field_table.add_row(spec.name, spec.type, "yes" if spec.required else "", spec.description or "")
        console.print(field_table)


@app.command()
def graph(schema_dir: SchemaDir) -> None:
    """Show which schemas reference which."""
    try:
        schemas = _load(schema_dir)
    except SchemaGraphError as e:
        _fail(e)

    nodes, edges = build_schema_relationship_graph(schemas)
    roots = [node.id for node in nodes if node.is_root]

    table = Table(title=f"{len(edges)} schema references")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Type")
    table.add_column("Properties")
    for edge in edges:
        table.add_row(edge.source, edge.target, edge.type, ", ".join(edge.property_names))
    console.print(table)
    console.print(f"Root schemas: {', '.join(roots) or '-'}")


@app.command()
def export(
    schema_dir: SchemaDir,
    snapshot_file: Annotated[Path, typer.Argument(help="Saved builder snapshot (JSON)")],
    metadata: Annotated[
        bool, typer.Option("--metadata", help="Include _schemaPath and _instanceId")
    ] = False,
    root: Annotated[
        Optional[str], typer.Option("--root", help="Export only the subtree of this instance")
    ] = None,
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write to a file instead of stdout")
    ] = None,
) -> None:
    """Export a saved builder snapshot as nested JSON."""
    try:
        schemas = _load(schema_dir)
        raw = _read_json(snapshot_file)
    except SchemaGraphError as e:
        _fail(e)

    session = BuilderSession(schemas)
    if not session.restore(raw):
        console.print(f"[bold red]Error:[/bold red] Invalid snapshot: {snapshot_file}")
        raise Exit(code=1)

    document = session.export_json(ExportOptions(include_metadata=metadata, root_instance_id=root))
    text = json.dumps(document, indent=2)
    if output:
        output.write_text(text + "\n", encoding="utf-8")
        console.print(f"Exported {len(session.instances)} instances to {output}")
    else:
        typer.echo(text)


@app.command("import")
def import_(
    schema_dir: SchemaDir,
    data_file: Annotated[Path, typer.Argument(help="JSON document to import")],
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Save the resulting snapshot here")
    ] = None,
) -> None:
    """Import a JSON document into a builder graph."""
    try:
        schemas = _load(schema_dir)
        data = _read_json(data_file)
    except SchemaGraphError as e:
        _fail(e)

    session = BuilderSession(schemas)
    result = session.import_json(data)

    table = Table(title=f"Imported {len(result.instances)} instances, {len(result.connections)} connections")
    table.add_column("Instance", style="bold")
    table.add_column("Schema", style="cyan")
    table.add_column("Values", justify="right")
    for instance in result.instances:
        table.add_row(instance.id, instance.schema_path, str(len(instance.values)))
    console.print(table)
    for error in result.errors:
        console.print(f"[red]- {escape(error)}[/red]")

    if output:
        storage = FileSnapshotStorage(output.parent)
        try:
            storage.save(session.snapshot(), name=output.stem)
        except SchemaGraphError as e:
            _fail(e)
        console.print(f"Snapshot saved to {storage.path(output.stem)}")

    if not result.success:
        raise Exit(code=1)


@app.command()
def check(
    schema_dir: SchemaDir,
    data_file: Annotated[Path, typer.Argument(help="JSON document to check")],
) -> None:
    """Preview an import: matched schema, errors and warnings."""
    try:
        schemas = _load(schema_dir)
        data = _read_json(data_file)
    except SchemaGraphError as e:
        _fail(e)

    result = validate_import_data(data, schemas)
    if result.matched_schema:
        console.print(f"Matched schema: [cyan]{result.matched_schema}[/cyan]")
    for error in result.errors:
        console.print(f"[red]error:[/red] {escape(error)}")
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(warning)}")

    if not result.valid:
        raise Exit(code=1)
    console.print("[green]OK[/green]")
