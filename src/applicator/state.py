"""Persisted applied-archetype record stored on a class item."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, model_validator

STATE_SCHEMA_VERSION = 2

# v1 stored loose camelCase flags directly on the class item
_LEGACY_KEYS = {
    "archetypes": "archetypes",
    "originalAssociations": "original_associations",
    "appliedAt": "applied_at",
    "appliedArchetypeData": "applied_archetype_data",
}


class AppliedState(BaseModel):
    """Which archetypes a class item carries, plus the pre-archetype backup."""

    schema_version: int = STATE_SCHEMA_VERSION
    archetypes: list[str] = Field(default_factory=list)
    original_associations: list[dict] = Field(default_factory=list)
    applied_at: Optional[str] = None
    applied_archetype_data: dict[str, dict] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy(cls, data):
        if not isinstance(data, dict) or data.get("schema_version", 1) >= STATE_SCHEMA_VERSION:
            return data
        migrated = {}
        for key, value in data.items():
            migrated[_LEGACY_KEYS.get(key, key)] = value
        migrated["original_associations"] = migrated.get("original_associations") or []
        migrated["applied_archetype_data"] = migrated.get("applied_archetype_data") or {}
        migrated["schema_version"] = STATE_SCHEMA_VERSION
        return migrated

    @classmethod
    def load(cls, data: dict | None) -> "AppliedState | None":
        if not data:
            return None
        return cls.model_validate(data)

    def dump(self) -> dict:
        return self.model_dump(mode="json")

    def stamp(self) -> None:
        self.applied_at = datetime.now(timezone.utc).isoformat()
