"""folio CLI: hierarchical writing projects with draft recovery and snapshots.

Commands:
    folio init [NAME]                     create folio.toml + workspace/
    folio list                            projects in display order
    folio create TITLE                    new project
    folio show PROJECT                    chapter tree with word counts
    folio add PROJECT TITLE               new chapter (or --group)
    folio save PROJECT CHAPTER [FILE]     commit content (records a snapshot)
    folio autosave PROJECT CHAPTER [FILE] cache uncommitted content
    folio rm / mv / reorder / rename / describe / set / delete / order
    folio snapshots list|show|delete|restore
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import click
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from folio.config import FolioConfig, init_config, load_config
from folio.models import KIND_CHAPTER, KIND_GROUP, PACES, STATUSES
from folio.store import ProjectStore

if TYPE_CHECKING:
    from folio.models import ChapterView
    from folio.project import Project

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> FolioConfig:
    ctx = click.get_current_context()
    opts = ctx.find_root().obj or {}
    try:
        cfg = load_config()
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    if opts.get("workspace"):
        cfg.workspace_dir = Path(opts["workspace"]).expanduser().resolve()
    return cfg


def _store() -> ProjectStore:
    return ProjectStore.from_config(_load_cfg())


def _require(project: Project | None, what: str) -> Project:
    if project is None:
        raise click.ClickException(f"Not found: {what}")
    return project


def _latest_snapshot(store: ProjectStore, project_id: str, chapter_id: str) -> int | None:
    entries = store.list_snapshots(project_id, chapter_id)
    return entries[0].timestamp if entries else None


def _fmt_ts(ms: int) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _add_views(parent: Tree, views: list[ChapterView]) -> None:
    for view in views:
        node = view.node
        if node.is_group:
            label = f"[bold]{node.title}[/bold]  [dim]{node.words}w  {node.id}[/dim]"
        else:
            pending = "  [yellow]* unsaved draft[/yellow]" if view.autosave_timestamp else ""
            label = f"{node.title}  [dim]{node.words}w  {node.status}  {node.id}[/dim]{pending}"
        if node.variant:
            label += f"  [cyan]({node.variant})[/cyan]"
        branch = parent.add(label)
        _add_views(branch, view.children)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="folio")
@click.option("--workspace", "-w", default=None, help="Workspace directory (overrides folio.toml)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, workspace: str | None, verbose: bool) -> None:
    """Versioned writing projects on disk."""
    ctx.obj = {"workspace": workspace}
    level = "DEBUG" if verbose else None
    if level is None:
        try:
            level = load_config().logging.level
        except (OSError, ValueError):
            level = "INFO"
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(message)s")


# ---------------------------------------------------------------------------
# folio init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Config root")
def init(name: str | None, root: str) -> None:
    """Create folio.toml and the workspace directory."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("folio.toml already exists, skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"Workspace : {cfg.workspace_dir}")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@cli.command("list")
def list_cmd() -> None:
    """List projects in display order."""
    projects = _store().list_projects()
    if not projects:
        click.echo("No projects.")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Chapters", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Updated")
    for i, project in enumerate(projects, 1):
        table.add_row(
            str(i),
            project.id,
            project.title,
            str(len(project.chapters)),
            str(project.record.words),
            _fmt_ts(project.record.updated_at),
        )
    Console().print(table)


@cli.command()
@click.argument("title")
@click.option("--description", "-d", default="", help="Free-text description")
def create(title: str, description: str) -> None:
    """Create a project; prints its ID."""
    try:
        project = _store().create_project(title, description)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(project.id)


@cli.command()
@click.argument("project_id")
@click.option("--json", "as_json", is_flag=True, help="Dump the materialized project as JSON")
def show(project_id: str, as_json: bool) -> None:
    """Show a project's chapter tree."""
    project = _require(_store().get_project(project_id), project_id)
    if as_json:
        click.echo(json.dumps(project.to_dict(), indent=2, ensure_ascii=False))
        return
    record = project.record
    tree = Tree(f"[bold]{record.title}[/bold]  [dim]{record.words}w  {record.id}[/dim]")
    _add_views(tree, project.structure)
    console = Console()
    if record.description:
        console.print(f"[dim]{record.description}[/dim]")
    console.print(tree)


@cli.command()
@click.argument("project_id")
@click.argument("title")
@click.option("--node", "node_id", default=None, help="Rename this node instead of the project")
def rename(project_id: str, title: str, node_id: str | None) -> None:
    """Rename a project (or one of its nodes)."""
    store = _store()
    try:
        if node_id:
            _require(store.rename_node(project_id, node_id, title), node_id)
        else:
            _require(store.rename_project(project_id, title), project_id)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Renamed to {title!r}")


@cli.command()
@click.argument("project_id")
@click.argument("text")
def describe(project_id: str, text: str) -> None:
    """Set a project's description."""
    _require(_store().update_description(project_id, text), project_id)
    click.echo("Description updated")


@cli.command()
@click.argument("project_id")
@click.confirmation_option(prompt="Delete the project with all chapters and snapshots?")
def delete(project_id: str) -> None:
    """Delete a project and everything under it."""
    if not _store().delete_project(project_id):
        raise click.ClickException(f"Not found: {project_id}")
    click.echo(f"Deleted {project_id}")


@cli.command()
@click.argument("project_ids", nargs=-1, required=True)
def order(project_ids: tuple[str, ...]) -> None:
    """Set the display order of projects (omitted ones keep their place at the end)."""
    projects = _store().reorder_projects(project_ids)
    for project in projects:
        click.echo(f"{project.id}  {project.title}")


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("project_id")
@click.argument("title")
@click.option("--parent", "parent_id", default=None, help="Group to append under")
@click.option("--group", "is_group", is_flag=True, help="Create a group instead of a chapter")
@click.option("--variant", default=None, help="Sub-category label")
def add(project_id: str, title: str, parent_id: str | None, is_group: bool, variant: str | None) -> None:
    """Add a chapter or group; prints its ID."""
    store = _store()
    before = _require(store.get_project(project_id), project_id)
    before_ids = {n.id for n, _ in before.record.tree.walk()}
    try:
        project = store.create_node(
            project_id, title,
            parent_id=parent_id,
            kind=KIND_GROUP if is_group else KIND_CHAPTER,
            variant=variant,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    project = _require(project, parent_id or project_id)
    for node, _ in project.record.tree.walk():
        if node.id not in before_ids:
            click.echo(node.id)


@cli.command()
@click.argument("project_id")
@click.argument("node_id")
def rm(project_id: str, node_id: str) -> None:
    """Delete a node with its descendants, drafts and snapshots."""
    _require(_store().delete_node(project_id, node_id), node_id)
    click.echo(f"Deleted {node_id}")


@cli.command()
@click.argument("project_id")
@click.argument("node_id")
@click.option("--to", "target_id", default=None, help="Target group (default: root level)")
def mv(project_id: str, node_id: str, target_id: str | None) -> None:
    """Move a node under another group (or to the root level)."""
    project = _require(_store().move_node(project_id, node_id, target_id), node_id)
    if project.record.tree.parent_id(node_id) != target_id:
        raise click.ClickException("Move rejected: target is the node, one of its descendants, or a chapter")
    click.echo(f"Moved {node_id}")


@cli.command()
@click.argument("project_id")
@click.argument("node_ids", nargs=-1, required=True)
@click.option("--parent", "parent_id", default=None, help="Group whose children to reorder")
def reorder(project_id: str, node_ids: tuple[str, ...], parent_id: str | None) -> None:
    """Reorder siblings; unnamed siblings follow in their current order."""
    project = _require(_store().reorder_nodes(project_id, node_ids, parent_id=parent_id), parent_id or project_id)
    for node in project.record.tree.children(parent_id):
        click.echo(f"{node.id}  {node.title}")


@cli.command("set")
@click.argument("project_id")
@click.argument("node_id")
@click.option("--status", default=None, type=click.Choice(STATUSES))
@click.option("--pace", default=None, type=click.Choice(PACES))
@click.option("--mood", default=None)
@click.option("--summary", default=None)
@click.option("--variant", default=None)
def set_cmd(
    project_id: str,
    node_id: str,
    status: str | None,
    pace: str | None,
    mood: str | None,
    summary: str | None,
    variant: str | None,
) -> None:
    """Update node metadata."""
    _require(
        _store().update_node(
            project_id, node_id, status=status, pace=pace, mood=mood, summary=summary, variant=variant,
        ),
        node_id,
    )
    click.echo(f"Updated {node_id}")


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("project_id")
@click.argument("chapter_id")
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
def save(project_id: str, chapter_id: str, source: TextIO) -> None:
    """Commit chapter content from FILE (or stdin)."""
    store = _store()
    before = _latest_snapshot(store, project_id, chapter_id)
    project = _require(store.save_chapter(project_id, chapter_id, source.read()), chapter_id)
    view = project.find(chapter_id)
    words = view.node.words if view else 0
    if _latest_snapshot(store, project_id, chapter_id) == before:
        click.echo(f"Unchanged ({words}w)")
    else:
        click.echo(f"Saved ({words}w)")


@cli.command()
@click.argument("project_id")
@click.argument("chapter_id")
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
def autosave(project_id: str, chapter_id: str, source: TextIO) -> None:
    """Cache uncommitted chapter content from FILE (or stdin)."""
    ts = _store().autosave_chapter(project_id, chapter_id, source.read())
    if ts is None:
        raise click.ClickException(f"Not found: {chapter_id}")
    click.echo(f"Autosaved at {_fmt_ts(ts)}")


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@cli.group()
def snapshots() -> None:
    """Browse and manage a chapter's version timeline."""


@snapshots.command("list")
@click.argument("project_id")
@click.argument("chapter_id")
def snapshots_list(project_id: str, chapter_id: str) -> None:
    """List snapshots, newest first."""
    entries = _store().list_snapshots(project_id, chapter_id)
    if not entries:
        click.echo("No snapshots.")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Timestamp", no_wrap=True)
    table.add_column("When", no_wrap=True)
    table.add_column("Words", justify="right")
    table.add_column("Preview")
    for entry in entries:
        table.add_row(str(entry.timestamp), _fmt_ts(entry.timestamp), str(entry.words), entry.preview)
    Console().print(table)


@snapshots.command("show")
@click.argument("project_id")
@click.argument("chapter_id")
@click.argument("timestamp", type=int)
def snapshots_show(project_id: str, chapter_id: str, timestamp: int) -> None:
    """Print a snapshot's full content."""
    content = _store().read_snapshot(project_id, chapter_id, timestamp)
    if content is None:
        raise click.ClickException(f"Snapshot not found: {timestamp}")
    click.echo(content, nl=False)


@snapshots.command("delete")
@click.argument("project_id")
@click.argument("chapter_id")
@click.argument("timestamp", type=int)
def snapshots_delete(project_id: str, chapter_id: str, timestamp: int) -> None:
    """Delete one snapshot (the chapter itself is untouched)."""
    if not _store().delete_snapshot(project_id, chapter_id, timestamp):
        raise click.ClickException(f"Snapshot not found: {timestamp}")
    click.echo(f"Deleted snapshot {timestamp}")


@snapshots.command("restore")
@click.argument("project_id")
@click.argument("chapter_id")
@click.argument("timestamp", type=int)
def snapshots_restore(project_id: str, chapter_id: str, timestamp: int) -> None:
    """Commit a snapshot's content as the chapter's current text."""
    _require(_store().restore_snapshot(project_id, chapter_id, timestamp), str(timestamp))
    click.echo(f"Restored snapshot {timestamp}")
