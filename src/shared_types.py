"""Shared enums and types for archetype-manager."""

from enum import StrEnum


class FeatureType(StrEnum):
    REPLACEMENT = "replacement"
    MODIFICATION = "modification"
    ADDITIVE = "additive"
    UNKNOWN = "unknown"


class DiffStatus(StrEnum):
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ADDED = "added"
    MODIFIED = "modified"


class FeatureSourceKind(StrEnum):
    AUTO_PARSE = "auto-parse"
    JE_FIX = "je-fix"


class DBSection(StrEnum):
    FIXES = "fixes"
    MISSING = "missing"
    CUSTOM = "custom"


class NotifyLevel(StrEnum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
