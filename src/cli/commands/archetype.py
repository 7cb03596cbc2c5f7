"""Archetype commands: classify, diff, apply, remove, restore, status."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, print_chat_log, print_notifications, run

console = Console()

_STATUS_STYLE = {
    "unchanged": "dim",
    "removed": "red",
    "added": "green",
    "modified": "yellow",
}


def _load_sheet(sheet_path: Path, class_key: str):
    from applicator.host import SheetFile

    sheet = SheetFile(sheet_path)
    subject = sheet.load()
    class_item = subject.class_item(class_key)
    if class_item is None:
        console.print(f"[red]No class item matching '{class_key}' on {subject.name}.[/]")
        sys.exit(1)
    return sheet, subject, class_item


def _resolver_for(class_item):
    """Names come from the sheet's resolvedName entries plus applied archetype snapshots."""
    from applicator.host import MappingResolver
    from applicator.state import AppliedState

    resolver = MappingResolver.from_associations(class_item.associations)
    state = AppliedState.load(class_item.state)
    if state:
        for backup in state.original_associations:
            if backup.get("resolvedName"):
                resolver.names.setdefault(backup["uuid"], backup["resolvedName"])
        for snapshot in state.applied_archetype_data.values():
            for feature in snapshot.get("features", []):
                resolver.names.setdefault(feature["uuid"], feature["name"])
    return resolver


def _load_archetype(archetype_file: Path):
    from applicator.host import ArchetypeFileSource

    source = ArchetypeFileSource()
    doc = run(source.load_archetype(archetype_file))
    if doc is None:
        console.print(f"[red]{archetype_file} is not an archetype definition.[/]")
        sys.exit(1)
    return doc, run(source.load_feature_documents(archetype_file))


async def _prepare(c, class_item, doc, feature_docs):
    from archetypes import generate_diff, parse_archetype, resolve_associations

    if c["config"].settings.auto_create_db:
        await c["db"].ensure_database()

    resolver = _resolver_for(class_item)
    archetype = await parse_archetype(doc, feature_docs, class_item.associations, resolver, c["db"])
    base = await resolve_associations(class_item.associations, resolver)
    return archetype, generate_diff(base, archetype)


def _print_diff(archetype, diff) -> None:
    table = Table(title=f"{archetype.name} ({archetype.slug})")
    table.add_column("Status", width=10)
    table.add_column("Lvl", width=4)
    table.add_column("Feature")
    table.add_column("Original")

    for entry in diff:
        style = _STATUS_STYLE.get(str(entry.status), "white")
        original = entry.original.display_name if entry.original else ""
        table.add_row(
            f"[{style}]{entry.status}[/]",
            str(entry.level) if entry.level is not None else "?",
            entry.name,
            original,
        )
    console.print(table)


def _print_unresolved(archetype) -> None:
    for feature in archetype.features:
        if feature.needs_user_input:
            target = f" (target: {feature.target})" if feature.target else ""
            console.print(f"[yellow]Needs review:[/] {feature.name} [{feature.type}]{target}")


@click.command("classify")
@click.argument("description")
def classify_cmd(description: str):
    """Classify a feature description."""
    from archetypes import classify

    result = classify(description)
    console.print(f"type:   {result.type}")
    console.print(f"target: {result.target or '-'}")
    console.print(f"level:  {result.level if result.level is not None else '-'}")


@click.command("diff")
@click.argument("sheet_path", type=click.Path(exists=True, path_type=Path))
@click.argument("class_key")
@click.argument("archetype_file", type=click.Path(exists=True, path_type=Path))
def diff_cmd(sheet_path: Path, class_key: str, archetype_file: Path):
    """Preview how an archetype changes a class's features."""
    c = get_components()
    _, _, class_item = _load_sheet(sheet_path, class_key)
    doc, feature_docs = _load_archetype(archetype_file)
    archetype, diff = run(_prepare(c, class_item, doc, feature_docs))

    _print_diff(archetype, diff)
    if c["config"].settings.show_parse_warnings:
        _print_unresolved(archetype)
    print_notifications(c["notifier"])


@click.command("apply")
@click.argument("sheet_path", type=click.Path(exists=True, path_type=Path))
@click.argument("class_key")
@click.argument("archetype_file", type=click.Path(exists=True, path_type=Path))
@click.option("--gm", is_flag=True, help="Act as the GM")
@click.option("--force", is_flag=True, help="Apply even when conflicts are detected")
def apply_cmd(sheet_path: Path, class_key: str, archetype_file: Path, gm: bool, force: bool):
    """Apply an archetype to a class on a character sheet."""
    from applicator.state import AppliedState
    from archetypes import Archetype, check_can_apply

    c = get_components(gm=gm)
    sheet, subject, class_item = _load_sheet(sheet_path, class_key)
    doc, feature_docs = _load_archetype(archetype_file)

    async def _apply():
        archetype, diff = await _prepare(c, class_item, doc, feature_docs)
        state = AppliedState.load(await class_item.get_state())
        snapshots = state.applied_archetype_data if state else {}
        applied = [Archetype.from_snapshot(s) for slug, s in snapshots.items() if slug != archetype.slug]
        check = check_can_apply(archetype, applied)
        if not check.can_apply and not force:
            return archetype, diff, check, False
        return archetype, diff, check, await c["applicator"].apply(subject, class_item, archetype, diff)

    archetype, diff, check, ok = run(_apply())

    for conflict in check.conflicts:
        console.print(
            f"[red]Conflict:[/] {conflict.archetype_a} ({conflict.feature_a}) vs "
            f"{conflict.archetype_b} ({conflict.feature_b}) over {conflict.feature_name}"
        )
    if not check.can_apply and not force:
        console.print(f"[red]Blocked by:[/] {', '.join(check.blocked_by)} (use --force to override)")
        sys.exit(1)

    print_notifications(c["notifier"])
    if not ok:
        sys.exit(1)

    sheet.save(subject)
    _print_diff(archetype, diff)
    print_chat_log(c["chat_log"])


@click.command("remove")
@click.argument("sheet_path", type=click.Path(exists=True, path_type=Path))
@click.argument("class_key")
@click.argument("slug")
@click.option("--gm", is_flag=True, help="Act as the GM")
def remove_cmd(sheet_path: Path, class_key: str, slug: str, gm: bool):
    """Remove an applied archetype from a class."""
    c = get_components(gm=gm)
    sheet, subject, class_item = _load_sheet(sheet_path, class_key)

    ok = run(c["applicator"].remove(subject, class_item, slug))
    print_notifications(c["notifier"])
    if not ok:
        sys.exit(1)
    sheet.save(subject)
    print_chat_log(c["chat_log"])


@click.command("restore")
@click.argument("sheet_path", type=click.Path(exists=True, path_type=Path))
@click.argument("class_key")
@click.option("--gm", is_flag=True, help="Act as the GM")
def restore_cmd(sheet_path: Path, class_key: str, gm: bool):
    """Drop every archetype on a class and restore the original features."""
    c = get_components(gm=gm)
    sheet, subject, class_item = _load_sheet(sheet_path, class_key)

    result = run(c["applicator"].restore_from_backup(subject, class_item))
    print_notifications(c["notifier"])
    if not result.success:
        sys.exit(1)
    sheet.save(subject)


@click.command("status")
@click.argument("sheet_path", type=click.Path(exists=True, path_type=Path))
def status_cmd(sheet_path: Path):
    """Show which archetypes are applied to each class on a sheet."""
    from applicator.host import SheetFile

    subject = SheetFile(sheet_path).load()
    if not subject.index:
        console.print(f"No archetypes applied to {subject.name}.")
        return

    table = Table(title=subject.name)
    table.add_column("Class")
    table.add_column("Archetypes")
    for tag, slugs in sorted(subject.index.items()):
        table.add_row(tag, ", ".join(slugs))
    console.print(table)
