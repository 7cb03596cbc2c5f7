"""In-process host implementations: in-memory sheets, JSON sheet files, recorders."""

import asyncio
import copy
import json
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from archetypes.models import ArchetypeDoc, FeatureDoc
from shared_types import NotifyLevel

logger = structlog.get_logger()


async def _io() -> None:
    # document reads and writes yield to the event loop
    await asyncio.sleep(0)


@dataclass
class MemoryClassItem:
    id: str
    name: str
    tag: str = ""
    associations: list[dict] = field(default_factory=list)
    state: dict | None = None

    async def get_associations(self) -> list[dict]:
        await _io()
        return copy.deepcopy(self.associations)

    async def set_associations(self, associations: list[dict]) -> None:
        await _io()
        self.associations = copy.deepcopy(associations)

    async def get_state(self) -> dict | None:
        await _io()
        return copy.deepcopy(self.state)

    async def set_state(self, state: dict | None) -> None:
        await _io()
        self.state = copy.deepcopy(state) if state else None

    def to_dict(self) -> dict:
        out = {"id": self.id, "name": self.name, "tag": self.tag, "associations": self.associations}
        if self.state:
            out["state"] = self.state
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryClassItem":
        return cls(
            id=data.get("id") or data["name"],
            name=data["name"],
            tag=data.get("tag", ""),
            associations=data.get("associations", []),
            state=data.get("state"),
        )


@dataclass
class MemorySubject:
    id: str
    name: str
    owner: str | None = None
    index: dict[str, list[str]] = field(default_factory=dict)
    classes: list[MemoryClassItem] = field(default_factory=list)

    async def get_archetype_index(self) -> dict[str, list[str]]:
        await _io()
        return copy.deepcopy(self.index)

    async def set_archetype_index(self, index: dict[str, list[str]] | None) -> None:
        await _io()
        self.index = copy.deepcopy(index) if index else {}

    def class_item(self, key: str) -> MemoryClassItem | None:
        wanted = key.strip().lower()
        for item in self.classes:
            if wanted in (item.id.lower(), item.name.lower(), item.tag.lower()):
                return item
        return None


class SheetFile:
    """A character sheet persisted as a single JSON document."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> MemorySubject:
        data = json.loads(self.path.read_text())
        return MemorySubject(
            id=data.get("id") or data["name"],
            name=data["name"],
            owner=data.get("owner"),
            index=data.get("index") or {},
            classes=[MemoryClassItem.from_dict(c) for c in data.get("classes", [])],
        )

    def save(self, subject: MemorySubject) -> None:
        data = {
            "id": subject.id,
            "name": subject.name,
            "owner": subject.owner,
            "index": subject.index,
            "classes": [c.to_dict() for c in subject.classes],
        }
        self.path.write_text(json.dumps(data, indent=2))
        logger.debug("sheet_saved", path=str(self.path))


class ArchetypeFileSource:
    """Archetype definitions stored as JSON files.

    Layout: {"name", "class", "features": [{name, description, id, uuid?}]}.
    Unreadable or absent files load as nothing rather than raising.
    """

    def _read(self, ref: str | Path) -> dict | None:
        path = Path(ref).expanduser()
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.warning("archetype_file_invalid", path=str(path), error=str(e))
            return None
        return data if isinstance(data, dict) else None

    async def load_archetype(self, ref: str | Path) -> ArchetypeDoc | None:
        data = self._read(ref)
        if not data or not data.get("name"):
            return None
        return ArchetypeDoc(name=data["name"], class_name=data.get("class") or None)

    async def load_feature_documents(self, ref: str | Path) -> list[FeatureDoc]:
        data = self._read(ref)
        if not data:
            return []
        return [
            FeatureDoc(
                name=f["name"],
                description=f.get("description", ""),
                id=f.get("id") or f["name"],
                uuid=f.get("uuid"),
            )
            for f in data.get("features") or []
            if f.get("name")
        ]


class MappingResolver:
    """Resolve uuids from a fixed uuid -> name table."""

    def __init__(self, names: dict[str, str] | None = None):
        self.names = dict(names or {})

    @classmethod
    def from_associations(cls, associations: list[dict]) -> "MappingResolver":
        return cls({a["uuid"]: a["resolvedName"] for a in associations if a.get("resolvedName")})

    async def resolve(self, uuid: str) -> dict | None:
        name = self.names.get(uuid)
        return {"name": name} if name else None


class StaticPermissions:
    def __init__(self, privileged: bool = False, user: str | None = None):
        self.privileged = privileged
        self.user = user

    async def is_privileged(self) -> bool:
        return self.privileged

    async def is_owner(self, subject) -> bool:
        owner = getattr(subject, "owner", None)
        return self.user is not None and owner == self.user


class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[NotifyLevel, str]] = []

    async def notify(self, level: NotifyLevel, message: str) -> None:
        self.messages.append((NotifyLevel(level), message))


class RecordingChatLog:
    def __init__(self):
        self.entries: list[dict] = []

    async def post_log(self, entry: dict) -> None:
        self.entries.append(entry)
