"""Shared CLI utilities."""

import asyncio
import sys

import structlog
from rich.console import Console

from shared_types import NotifyLevel

console = Console()
logger = structlog.get_logger()

_LEVEL_STYLE = {
    NotifyLevel.INFO: "green",
    NotifyLevel.WARN: "yellow",
    NotifyLevel.ERROR: "red",
}


def get_components(gm: bool = False):
    """Initialize config, database and applicator.

    Args:
        gm: Act as a privileged user regardless of config.
    """
    from applicator import Applicator
    from applicator.host import RecordingChatLog, RecordingNotifier, StaticPermissions
    from cli.config import load_config_model
    from content import JournalDB

    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    permissions = StaticPermissions(privileged=gm or config.user.gm, user=config.user.name)
    notifier = RecordingNotifier()
    chat_log = RecordingChatLog()
    db = JournalDB(config.paths.db_dir, permissions=permissions, notifier=notifier)

    return {
        "config": config,
        "permissions": permissions,
        "notifier": notifier,
        "chat_log": chat_log,
        "db": db,
        "applicator": Applicator(permissions, notifier, chat_log),
    }


def run(coro):
    """Run a coroutine from a synchronous click command."""
    return asyncio.run(coro)


def print_notifications(notifier) -> None:
    for level, message in notifier.messages:
        style = _LEVEL_STYLE.get(level, "white")
        console.print(f"[{style}]{message}[/]")


def print_chat_log(chat_log) -> None:
    for entry in chat_log.entries:
        console.print(f"[bold]{entry.get('title', '')}[/]")
        console.print(entry.get("content", ""))
