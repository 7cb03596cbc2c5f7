"""CLI command modules."""

from .archetype import apply_cmd, classify_cmd, diff_cmd, remove_cmd, restore_cmd, status_cmd
from .database import db

__all__ = [
    "apply_cmd",
    "classify_cmd",
    "db",
    "diff_cmd",
    "remove_cmd",
    "restore_cmd",
    "status_cmd",
]
