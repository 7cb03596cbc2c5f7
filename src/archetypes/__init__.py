"""Archetype parsing, diffing and conflict detection."""

from .conflicts import (
    CanApplyResult,
    check_against_applied,
    check_can_apply,
    get_cumulative_replacements,
    validate_add_to_stack,
    validate_class,
    validate_remove_from_stack,
)
from .diff import (
    StackValidation,
    detect_conflicts,
    generate_diff,
    validate_final_state,
    validate_stack,
)
from .models import (
    Archetype,
    ArchetypeDoc,
    ArchetypeFeature,
    Association,
    Conflict,
    DiffEntry,
    FeatureDoc,
)
from .parser import (
    classify,
    match_target,
    normalize_name,
    normalize_tier,
    parse_archetype,
    resolve_associations,
    slugify,
)

__all__ = [
    "Archetype",
    "ArchetypeDoc",
    "ArchetypeFeature",
    "Association",
    "CanApplyResult",
    "Conflict",
    "DiffEntry",
    "FeatureDoc",
    "StackValidation",
    "check_against_applied",
    "check_can_apply",
    "classify",
    "detect_conflicts",
    "generate_diff",
    "get_cumulative_replacements",
    "match_target",
    "normalize_name",
    "normalize_tier",
    "parse_archetype",
    "resolve_associations",
    "slugify",
    "validate_add_to_stack",
    "validate_class",
    "validate_final_state",
    "validate_remove_from_stack",
    "validate_stack",
]
