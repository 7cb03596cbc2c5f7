"""Diff generation between a base progression and an archetype, plus stack validation."""

from dataclasses import dataclass, field

from shared_types import DiffStatus, FeatureType

from .models import Archetype, Association, Conflict, DiffEntry
from .parser import normalize_tier


@dataclass
class StackValidation:
    valid: bool
    conflicts: list[Conflict] = field(default_factory=list)


@dataclass
class FinalStateValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _targeted_uuids(archetype: Archetype) -> dict[str, FeatureType]:
    """Map base uuid -> the feature type that consumes it (first feature wins)."""
    targeted: dict[str, FeatureType] = {}
    for feature in archetype.features:
        if feature.matched_association is None:
            continue
        if feature.type not in (FeatureType.REPLACEMENT, FeatureType.MODIFICATION):
            continue
        targeted.setdefault(feature.matched_association.uuid, feature.type)
    return targeted


def generate_diff(base: list[Association], archetype: Archetype) -> list[DiffEntry]:
    """Describe how an archetype changes a resolved base association list.

    Base-derived entries (unchanged / removed) come first in base order;
    archetype-derived entries (added / modified) follow in feature order.
    """
    targeted = _targeted_uuids(archetype)
    diff: list[DiffEntry] = []

    for assoc in base:
        kind = targeted.get(assoc.uuid)
        if kind == FeatureType.MODIFICATION:
            # represented by the modified entry below
            continue
        status = DiffStatus.REMOVED if kind == FeatureType.REPLACEMENT else DiffStatus.UNCHANGED
        diff.append(
            DiffEntry(status=status, name=assoc.display_name, level=assoc.level, original=assoc)
        )

    for feature in archetype.features:
        matched = feature.matched_association
        if feature.type == FeatureType.MODIFICATION and matched is not None:
            diff.append(
                DiffEntry(
                    status=DiffStatus.MODIFIED,
                    name=feature.name,
                    level=feature.level,
                    original=matched,
                    archetype_feature=feature,
                )
            )
        else:
            diff.append(
                DiffEntry(
                    status=DiffStatus.ADDED,
                    name=feature.name,
                    level=feature.level,
                    archetype_feature=feature,
                )
            )

    return diff


def detect_conflicts(archetype_a: Archetype, archetype_b: Archetype) -> list[Conflict]:
    """Pairwise conflicts between two archetypes touching the same tier family.

    Tier-stripped keys collapse "Weapon Training 1" and "Weapon Training 2",
    so archetypes touching different tiers of one progression are reported.
    """
    conflicts = []
    for fa in archetype_a.features:
        if not fa.target:
            continue
        key = normalize_tier(fa.target)
        for fb in archetype_b.features:
            if not fb.target or normalize_tier(fb.target) != key:
                continue
            conflicts.append(
                Conflict(
                    feature_name=fb.target,
                    archetype_a=archetype_a.name,
                    feature_a=fa.name,
                    archetype_b=archetype_b.name,
                    feature_b=fb.name,
                )
            )
    return conflicts


def validate_stack(archetypes: list[Archetype]) -> StackValidation:
    conflicts: list[Conflict] = []
    for i, first in enumerate(archetypes):
        for second in archetypes[i + 1 :]:
            conflicts.extend(detect_conflicts(first, second))
    return StackValidation(valid=not conflicts, conflicts=conflicts)


def validate_final_state(associations: list[dict]) -> FinalStateValidation:
    """Check a proposed association list before it is written to a class item."""
    errors = []
    for assoc in associations:
        level = assoc.get("level")
        if not assoc.get("uuid"):
            errors.append(f"Entry at level {level} has no UUID reference")
        if level is None or level < 1:
            label = assoc.get("resolvedName") or assoc.get("uuid") or "unknown"
            errors.append(f'Entry "{label}" has invalid level: {level}')
    return FinalStateValidation(valid=not errors, errors=errors)
