"""Archetype content database."""

from .journal_db import ArchetypeEntry, FeatureEntry, JournalDB

__all__ = [
    "ArchetypeEntry",
    "FeatureEntry",
    "JournalDB",
]
