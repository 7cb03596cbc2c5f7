"""Data models for archetype parsing, diffing and conflict detection."""

from dataclasses import asdict, dataclass, field

from shared_types import DiffStatus, FeatureSourceKind, FeatureType


@dataclass
class Association:
    """One leveled entry of a class's ability progression."""

    uuid: str
    level: int
    resolved_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Association":
        return cls(
            uuid=data.get("uuid") or data.get("id") or "",
            level=data.get("level"),
            resolved_name=data.get("resolvedName", data.get("resolved_name")),
        )

    def to_dict(self) -> dict:
        """Serialise to the host's association shape (uuid + level)."""
        out = {"uuid": self.uuid, "level": self.level}
        if self.resolved_name is not None:
            out["resolvedName"] = self.resolved_name
        return out

    @property
    def display_name(self) -> str:
        return self.resolved_name or self.uuid


@dataclass
class ArchetypeFeature:
    name: str
    level: int | None
    type: FeatureType
    uuid: str
    target: str | None = None
    matched_association: Association | None = None
    needs_user_input: bool = False
    source: FeatureSourceKind = FeatureSourceKind.AUTO_PARSE
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ArchetypeFeature":
        matched = data.get("matched_association")
        return cls(
            name=data["name"],
            level=data.get("level"),
            type=FeatureType(data.get("type", FeatureType.UNKNOWN)),
            uuid=data.get("uuid", ""),
            target=data.get("target"),
            matched_association=Association.from_dict(matched) if matched else None,
            needs_user_input=data.get("needs_user_input", False),
            source=FeatureSourceKind(data.get("source", FeatureSourceKind.AUTO_PARSE)),
            description=data.get("description", ""),
        )


@dataclass
class Archetype:
    name: str
    slug: str
    class_name: str | None = None
    features: list[ArchetypeFeature] = field(default_factory=list)

    def snapshot(self) -> dict:
        """Plain-dict copy suitable for persisting alongside the applied state."""
        data = asdict(self)
        for feature in data["features"]:
            feature["type"] = str(feature["type"])
            feature["source"] = str(feature["source"])
        return data

    @classmethod
    def from_snapshot(cls, data: dict) -> "Archetype":
        return cls(
            name=data["name"],
            slug=data["slug"],
            class_name=data.get("class_name"),
            features=[ArchetypeFeature.from_dict(f) for f in data.get("features", [])],
        )


@dataclass
class DiffEntry:
    status: DiffStatus
    name: str
    level: int | None
    original: Association | None = None
    archetype_feature: ArchetypeFeature | None = None


@dataclass(frozen=True)
class Conflict:
    """Two archetype features touching the same base ability."""

    feature_name: str
    archetype_a: str
    feature_a: str
    archetype_b: str
    feature_b: str


@dataclass
class FeatureDoc:
    """Raw feature record supplied by the content loader."""

    name: str
    description: str
    id: str
    uuid: str | None = None


@dataclass
class ArchetypeDoc:
    name: str
    class_name: str | None = None
