"""Archetype database commands."""

import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, print_notifications, run
from content.journal_db import SECTIONS, ArchetypeEntry

console = Console()

SECTION_CHOICE = click.Choice([str(s) for s in SECTIONS])


@click.group()
def db():
    """Archetype database (fixes, missing, custom sections)."""
    pass


@db.command("init")
def db_init():
    """Create the database section files if missing."""
    c = get_components()
    run(c["db"].ensure_database())
    console.print(f"[green]✓[/] Database ready at {c['db'].db_dir}")


@db.command("show")
@click.argument("section", type=SECTION_CHOICE)
def db_show(section: str):
    """List the archetypes stored in a section."""
    c = get_components()
    data = run(c["db"].read_section(section))
    print_notifications(c["notifier"])

    if not data:
        console.print(f"Section {section} is empty.")
        return

    table = Table(title=f"{section} section")
    table.add_column("Slug")
    table.add_column("Class", width=12)
    table.add_column("Features", width=8)
    for slug, entry in sorted(data.items()):
        entry = entry if isinstance(entry, dict) else {}
        table.add_row(slug, entry.get("class", ""), str(len(entry.get("features") or {})))
    console.print(table)


@db.command("get")
@click.argument("slug")
def db_get(slug: str):
    """Look up an archetype across sections (fixes > missing > custom)."""
    c = get_components()
    entry = run(c["db"].get_archetype(slug))
    print_notifications(c["notifier"])
    if entry is None:
        console.print(f"[yellow]{slug} not found.[/]")
        sys.exit(1)
    console.print_json(json.dumps(entry))


@db.command("set")
@click.argument("section", type=SECTION_CHOICE)
@click.argument("slug")
@click.argument("entry_file", type=click.Path(exists=True, path_type=Path))
@click.option("--gm", is_flag=True, help="Act as the GM")
def db_set(section: str, slug: str, entry_file: Path, gm: bool):
    """Store an archetype entry read from a JSON file."""
    try:
        entry = ArchetypeEntry.model_validate(json.loads(entry_file.read_text()))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid entry:[/] {e}")
        sys.exit(1)

    c = get_components(gm=gm)
    ok = run(c["db"].set_archetype(section, slug, entry.to_json()))
    print_notifications(c["notifier"])
    if not ok:
        sys.exit(1)
    console.print(f"[green]Saved[/] {slug} to {section}")


@db.command("delete")
@click.argument("section", type=SECTION_CHOICE)
@click.argument("slug")
@click.option("--gm", is_flag=True, help="Act as the GM")
def db_delete(section: str, slug: str, gm: bool):
    """Delete an archetype entry from a section."""
    c = get_components(gm=gm)
    ok = run(c["db"].delete_archetype(section, slug))
    print_notifications(c["notifier"])
    if not ok:
        sys.exit(1)
    console.print(f"[green]Deleted[/] {slug} from {section}")
