"""Archetype compatibility checks run before an archetype is committed.

Stacking rule: no two archetypes may replace or alter the same base class
feature. Different tiers of one progression count as the same feature.
"""

from dataclasses import dataclass, field

from .diff import detect_conflicts, validate_stack
from .models import Archetype, Conflict
from .parser import normalize_tier


@dataclass
class CanApplyResult:
    can_apply: bool
    conflicts: list[Conflict] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)


@dataclass
class CumulativeReplacements:
    replacements: dict[str, list[dict]] = field(default_factory=dict)
    total_replaced: int = 0


@dataclass
class StackChange:
    valid: bool
    conflicts: list[Conflict]
    stack: list[Archetype]
    cumulative: CumulativeReplacements


def validate_class(archetype: Archetype, class_item) -> bool:
    """True when the archetype's class matches the class item's tag or name."""
    wanted = (archetype.class_name or "").strip().lower()
    if not wanted:
        return False
    tag = (getattr(class_item, "tag", None) or "").strip().lower()
    name = (getattr(class_item, "name", None) or "").strip().lower()
    return wanted in (tag, name)


def check_against_applied(candidate: Archetype, applied: list[Archetype]) -> list[Conflict]:
    conflicts = []
    for existing in applied:
        conflicts.extend(detect_conflicts(candidate, existing))
    return conflicts


def check_can_apply(candidate: Archetype, applied: list[Archetype]) -> CanApplyResult:
    conflicts = check_against_applied(candidate, applied)
    blocked_by = list(dict.fromkeys(c.archetype_b for c in conflicts))
    return CanApplyResult(can_apply=not conflicts, conflicts=conflicts, blocked_by=blocked_by)


def get_cumulative_replacements(archetypes: list[Archetype]) -> CumulativeReplacements:
    """Group every targeted base feature of a stack by its tier-stripped name."""
    result = CumulativeReplacements()
    for archetype in archetypes:
        for feature in archetype.features:
            if not feature.target:
                continue
            key = normalize_tier(feature.target)
            result.replacements.setdefault(key, []).append(
                {
                    "archetype_name": archetype.name,
                    "feature_name": feature.name,
                    "type": str(feature.type),
                    "target": feature.target,
                }
            )
            result.total_replaced += 1
    return result


def validate_add_to_stack(candidate: Archetype, stack: list[Archetype]) -> StackChange:
    proposed = [*stack, candidate]
    validation = validate_stack(proposed)
    return StackChange(
        valid=validation.valid,
        conflicts=validation.conflicts,
        stack=proposed,
        cumulative=get_cumulative_replacements(proposed),
    )


def validate_remove_from_stack(slug: str, stack: list[Archetype]) -> StackChange:
    remaining = [a for a in stack if a.slug != slug]
    validation = validate_stack(remaining)
    return StackChange(
        valid=validation.valid,
        conflicts=validation.conflicts,
        stack=remaining,
        cumulative=get_cumulative_replacements(remaining),
    )
