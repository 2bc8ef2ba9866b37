"""Typer-based CLI for tsgraph dependency graphs and code intelligence."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__, config_manager
from .dead_code import flatten
from .orchestrator import GraphOrchestrator
from .storage import IndexStore, ProjectManager

console = Console()

app = typer.Typer(
    help="tsgraph: dependency graphs and code intelligence for TS/TSX/Vue projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Show or change user configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"tsgraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log progress to stderr."),
):
    """tsgraph: index a project once, then query it without re-parsing."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _project_name_from_path(project_path: Path) -> str:
    return project_path.resolve().name.replace(" ", "_")


def _open_current_store(pm: ProjectManager) -> IndexStore:
    project = pm.get_current_project()
    if not project:
        raise typer.BadParameter("No project loaded. Use 'tsg load-project <name>' or run 'tsg index <path>'.")
    project_dir = pm.project_dir(project)
    if not project_dir.exists():
        raise typer.BadParameter(f"Loaded project '{project}' does not exist in memory.")
    return IndexStore(project_dir)


def _parse_aliases(values: List[str]) -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for value in values:
        pattern, sep, target = value.partition("=")
        if not sep or not pattern or not target:
            raise typer.BadParameter(f"Alias '{value}' must look like PATTERN=TARGET, e.g. '@/*=src/*'.")
        aliases[pattern.strip()] = target.strip()
    return aliases


def _format_location(payload: Dict) -> str:
    start = payload["range"]["start"]
    return f"{payload['uri']}:{start['line']}:{start['character']}"


# ===================================================================
# Project memory
# ===================================================================

@app.command("index")
def index_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    project_name: Optional[str] = typer.Option(None, "--name", "-n", help="Explicit memory name for project."),
    alias: List[str] = typer.Option([], "--alias", "-a", help="Extra path alias PATTERN=TARGET (repeatable)."),
):
    """Parse a project and store its dependency graph and code-intelligence index."""
    extra = _parse_aliases(alias)
    pm = ProjectManager()
    resolved_path = project_path.resolve()
    name = project_name or _project_name_from_path(resolved_path)
    project_dir = pm.create_or_get_project(name)

    store = IndexStore(project_dir)
    orchestrator = GraphOrchestrator(store)
    result = orchestrator.index(resolved_path, extra)
    if not result.ok:
        store.close()
        typer.echo(f"Indexing failed: {result.error}", err=True)
        raise typer.Exit(code=1)

    store.set_metadata({
        **store.get_metadata(),
        "project_name": name,
        "indexed_at": datetime.now().isoformat(),
    })
    pm.set_current_project(name)
    store.close()

    typer.echo(f"Indexed '{resolved_path}' as project '{name}'.")
    typer.echo(f"Nodes: {len(result.nodes)} | Time: {result.parse_time:.2f}s")
    for path, reason in sorted(result.failed_files.items()):
        typer.echo(f"  skipped {path}: {reason}", err=True)


@app.command("list-projects")
def list_projects():
    """List all persisted project memories."""
    pm = ProjectManager()
    projects = pm.list_projects()
    current = pm.get_current_project()

    if not projects:
        typer.echo("No projects indexed yet.")
        raise typer.Exit(code=0)

    for p in projects:
        marker = "*" if p == current else " "
        typer.echo(f"{marker} {p}")


@app.command("load-project")
def load_project(project_name: str = typer.Argument(..., help="Name of project memory to load.")):
    """Switch active project memory."""
    pm = ProjectManager()
    if project_name not in pm.list_projects():
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    pm.set_current_project(project_name)
    typer.echo(f"Loaded project '{project_name}'.")


@app.command("unload-project")
def unload_project():
    """Unload active project memory without deleting data."""
    ProjectManager().unload_project()
    typer.echo("Unloaded active project.")


@app.command("delete-project")
def delete_project(project_name: str = typer.Argument(..., help="Project memory to delete.")):
    """Delete persisted project memory."""
    pm = ProjectManager()
    if not pm.delete_project(project_name):
        raise typer.BadParameter(f"Project '{project_name}' not found.")
    typer.echo(f"Deleted project '{project_name}'.")


@app.command("current-project")
def current_project():
    """Print active project memory name."""
    typer.echo(ProjectManager().get_current_project() or "No project loaded")


# ===================================================================
# Code intelligence
# ===================================================================

@app.command("definition")
def definition(
    file: str = typer.Argument(..., help="Project-relative file path."),
    line: int = typer.Argument(..., min=0, help="0-based line."),
    character: int = typer.Argument(..., min=0, help="0-based character."),
):
    """Go to the definition of the symbol at a position."""
    store = _open_current_store(ProjectManager())
    location = GraphOrchestrator(store).definition(file, line, character)
    store.close()
    if location is None:
        typer.echo("No definition found.")
        raise typer.Exit(code=1)
    typer.echo(_format_location(location.to_dict()))


@app.command("hover")
def hover(
    file: str = typer.Argument(..., help="Project-relative file path."),
    line: int = typer.Argument(..., min=0, help="0-based line."),
    character: int = typer.Argument(..., min=0, help="0-based character."),
):
    """Show the declaration signature of the symbol at a position."""
    store = _open_current_store(ProjectManager())
    result = GraphOrchestrator(store).hover(file, line, character)
    store.close()
    if result is None:
        typer.echo("No hover information.")
        raise typer.Exit(code=1)
    typer.echo(result["contents"])


@app.command("references")
def references(
    file: str = typer.Argument(..., help="Project-relative file path."),
    line: int = typer.Argument(..., min=0, help="0-based line."),
    character: int = typer.Argument(..., min=0, help="0-based character."),
):
    """List cross-file references to the symbol at a position."""
    store = _open_current_store(ProjectManager())
    locations = GraphOrchestrator(store).references(file, line, character)
    store.close()
    if not locations:
        typer.echo("No references found.")
        raise typer.Exit(code=0)
    for location in locations:
        typer.echo(_format_location(location.to_dict()))


@app.command("deps")
def deps(
    node_id: str = typer.Argument(..., help="Graph node id, e.g. 'src/App.tsx::App'."),
    depth: int = typer.Option(1, min=1, max=6, help="Traversal depth."),
):
    """Show the dependency tree below a graph node."""
    store = _open_current_store(ProjectManager())
    typer.echo(GraphOrchestrator(store).deps(node_id, depth=depth))
    store.close()


@app.command("outline")
def outline(
    file: str = typer.Argument(..., help="Project-relative file path."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a tree."),
):
    """Print the outline of one file."""
    store = _open_current_store(ProjectManager())
    items = GraphOrchestrator(store).outline(file)
    store.close()
    if not items:
        typer.echo(f"No outline for '{file}'.")
        raise typer.Exit(code=1)
    if as_json:
        typer.echo(json.dumps([item.to_dict() for item in items], indent=2))
        return

    def emit(item, level: int) -> None:
        typer.echo(f"{'  ' * level}{item.line:>4}  {item.kind}: {item.name}")
        for child in item.children:
            emit(child, level + 1)

    for item in items:
        emit(item, 0)


@app.command("dead-code")
def dead_code(
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
):
    """Report unused exports, imports, locals, props and arguments."""
    pm = ProjectManager()
    store = _open_current_store(pm)
    results = GraphOrchestrator(store).dead_code()
    store.close()

    if as_json:
        typer.echo(json.dumps(results.to_dict(), indent=2))
        return

    if results.total_count == 0:
        console.print(Panel.fit("[bold green]No dead code found[/bold green]", border_style="green"))
        return

    table = Table(title=f"Dead code in '{pm.get_current_project()}'", show_header=True)
    table.add_column("Category", style="cyan")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Context", style="dim")
    for item in flatten(results):
        context = item.from_path or item.component_name or item.function_name or ""
        table.add_row(item.category, item.file_path, str(item.line), item.symbol_name, context)
    console.print(table)
    typer.echo(f"Total: {results.total_count}")


# ===================================================================
# Configuration
# ===================================================================

@config_app.command("show")
def config_show():
    """Show aliases and parser settings."""
    table = Table(title="Path aliases", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Target")
    for pattern, target in sorted(config_manager.load_aliases().items()):
        table.add_row(pattern, target)
    console.print(table)
    for key, value in sorted(config_manager.load_parser_config().items()):
        typer.echo(f"parser.{key} = {value}")
    typer.echo(f"Config file: {config_manager.CONFIG_FILE}")


@config_app.command("set-alias")
def config_set_alias(
    pattern: str = typer.Argument(..., help="Alias pattern, e.g. '~/*'."),
    target: str = typer.Argument(..., help="Target path, e.g. 'src/*'."),
):
    """Add or overwrite a path alias."""
    if not config_manager.set_alias(pattern, target):
        typer.echo("Could not write config.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Alias '{pattern}' -> '{target}' saved.")


@config_app.command("remove-alias")
def config_remove_alias(pattern: str = typer.Argument(..., help="Alias pattern to remove.")):
    """Remove a path alias."""
    if not config_manager.remove_alias(pattern):
        raise typer.BadParameter(f"Alias '{pattern}' not configured.")
    typer.echo(f"Alias '{pattern}' removed.")


@config_app.command("tolerate-errors")
def config_tolerate_errors(
    enabled: bool = typer.Argument(..., help="Keep files whose syntax tree has errors."),
):
    """Toggle parsing of files with syntax errors."""
    config_manager.save_parser_config(tolerate_syntax_errors=enabled)
    typer.echo(f"parser.tolerate_syntax_errors = {enabled}")


if __name__ == "__main__":
    app()
