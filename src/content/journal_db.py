"""Archetype database: three JSON sections (fixes, missing, custom) on disk.

- fixes: overrides for bad compendium data (privileged writes only)
- missing: official archetypes absent from the compendium (privileged writes only)
- custom: homebrew archetypes (anyone may write)
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shared_types import DBSection, NotifyLevel

logger = structlog.get_logger()

SECTIONS = [DBSection.FIXES, DBSection.MISSING, DBSection.CUSTOM]
PRIVILEGED_SECTIONS = {DBSection.FIXES, DBSection.MISSING}


class FeatureEntry(BaseModel):
    level: Optional[int] = None
    replaces: Optional[str] = None
    description: str = ""


class ArchetypeEntry(BaseModel):
    """One archetype record as stored in a section."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(default="", alias="class")
    features: dict[str, FeatureEntry] = Field(default_factory=dict)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


def _check_section(section: str) -> DBSection:
    try:
        return DBSection(section)
    except ValueError:
        raise ValueError(
            f"Invalid section: {section}. Must be one of: {', '.join(SECTIONS)}"
        ) from None


class JournalDB:
    """Flat JSON store, one file per section, with in-place corruption recovery."""

    def __init__(self, db_dir: str | Path, permissions=None, notifier=None):
        self.db_dir = Path(db_dir).expanduser()
        self.permissions = permissions
        self.notifier = notifier

    def _path(self, section: DBSection) -> Path:
        return self.db_dir / f"{section}.json"

    async def ensure_database(self) -> None:
        """Create missing section files containing an empty object."""
        self.db_dir.mkdir(parents=True, exist_ok=True)
        for section in SECTIONS:
            path = self._path(section)
            if not path.exists():
                logger.info("journal_db_section_created", section=str(section))
                path.write_text("{}")

    async def _notify(self, level: NotifyLevel, message: str) -> None:
        if self.notifier is not None:
            await self.notifier.notify(level, message)

    async def _reset(self, section: DBSection) -> None:
        self._path(section).write_text("{}")

    async def read_section(self, section: str) -> dict:
        """Return a section's contents; corrupted content is reset to {} with a warning."""
        section = _check_section(section)
        path = self._path(section)
        if not path.exists():
            await self.ensure_database()
            return {}

        raw = path.read_text() or "{}"
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("journal_db_corrupted", section=str(section))
            await self._notify(
                NotifyLevel.WARN,
                f"Archetype Manager: Corrupted data in {section} section was reset.",
            )
            await self._reset(section)
            return {}

        if not isinstance(parsed, dict):
            logger.warning(
                "journal_db_unexpected_type", section=str(section), type=type(parsed).__name__
            )
            await self._notify(
                NotifyLevel.WARN,
                f"Archetype Manager: Unexpected data in {section} section was reset.",
            )
            await self._reset(section)
            return {}

        return parsed

    async def _may_write(self, section: DBSection) -> bool:
        if section not in PRIVILEGED_SECTIONS:
            return True
        if self.permissions is None:
            return False
        return await self.permissions.is_privileged()

    async def write_section(self, section: str, data: dict) -> bool:
        section = _check_section(section)
        if not await self._may_write(section):
            logger.warning("journal_db_write_denied", section=str(section))
            await self._notify(
                NotifyLevel.ERROR, "Only the GM can modify the fixes and missing sections."
            )
            return False

        self.db_dir.mkdir(parents=True, exist_ok=True)
        self._path(section).write_text(json.dumps(data, indent=2))
        return True

    async def get_archetype(self, slug: str) -> dict | None:
        """Look up a slug across sections (fixes > missing > custom), tagging the source."""
        for section in SECTIONS:
            data = await self.read_section(section)
            entry = data.get(slug)
            if not entry:
                continue
            if not isinstance(entry, dict):
                logger.warning(
                    "journal_db_entry_ignored", section=str(section), slug=slug, type=type(entry).__name__
                )
                continue
            return {**entry, "_section": str(section)}
        return None

    async def set_archetype(self, section: str, slug: str, entry: dict) -> bool:
        data = await self.read_section(section)
        data[slug] = entry
        return await self.write_section(section, data)

    async def delete_archetype(self, section: str, slug: str) -> bool:
        data = await self.read_section(section)
        data.pop(slug, None)
        return await self.write_section(section, data)
