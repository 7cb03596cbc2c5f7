"""Archetype application: commits diffs to class items under per-subject locks."""

from .applicator import (
    AlreadyAppliedError,
    Applicator,
    ApplicatorError,
    ClassMismatchError,
    InvalidFinalStateError,
    NotAppliedError,
    PermissionDeniedError,
    RestoreResult,
)
from .locks import DuplicateRequestError, SubjectLockRegistry
from .state import AppliedState

__all__ = [
    "AlreadyAppliedError",
    "AppliedState",
    "Applicator",
    "ApplicatorError",
    "ClassMismatchError",
    "DuplicateRequestError",
    "InvalidFinalStateError",
    "NotAppliedError",
    "PermissionDeniedError",
    "RestoreResult",
    "SubjectLockRegistry",
]
