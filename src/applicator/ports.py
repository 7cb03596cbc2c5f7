"""Host-facing interfaces the applicator depends on."""

from typing import Protocol

from archetypes.models import ArchetypeDoc, FeatureDoc
from shared_types import NotifyLevel


class NameResolver(Protocol):
    async def resolve(self, uuid: str) -> dict | None: ...


class FeatureSource(Protocol):
    """Raw archetype content; an absent archetype loads as None / []."""

    async def load_archetype(self, ref) -> ArchetypeDoc | None: ...

    async def load_feature_documents(self, ref) -> list[FeatureDoc]: ...


class PermissionOracle(Protocol):
    async def is_privileged(self) -> bool: ...

    async def is_owner(self, subject: "Subject") -> bool: ...


class Notifier(Protocol):
    async def notify(self, level: NotifyLevel, message: str) -> None: ...


class ChatLog(Protocol):
    async def post_log(self, entry: dict) -> None: ...


class Subject(Protocol):
    """A character sheet owning one or more class items."""

    id: str
    name: str

    async def get_archetype_index(self) -> dict[str, list[str]]: ...

    async def set_archetype_index(self, index: dict[str, list[str]] | None) -> None: ...


class ClassItem(Protocol):
    id: str
    name: str
    tag: str

    async def get_associations(self) -> list[dict]: ...

    async def set_associations(self, associations: list[dict]) -> None: ...

    async def get_state(self) -> dict | None: ...

    async def set_state(self, state: dict | None) -> None: ...
