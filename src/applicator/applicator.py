"""Applies and removes archetypes on class items.

Handles:
- Backing up the original association list before the first archetype
- Writing archetype feature uuids in place of replaced/modified base entries
- Tracking applied slugs and archetype snapshots in a persisted state record
- Mirroring applied slugs into the subject's per-class index
- Rollback when a write fails part-way
- Removal by backup restore (last archetype) or replay of the remaining ones
"""

from dataclasses import dataclass, replace

import structlog

from archetypes.conflicts import validate_class
from archetypes.diff import generate_diff, validate_final_state
from archetypes.models import Archetype, Association, DiffEntry
from archetypes.parser import slugify
from shared_types import DiffStatus, NotifyLevel

from .locks import DuplicateRequestError, SubjectLockRegistry
from .ports import ChatLog, ClassItem, Notifier, PermissionOracle, Subject
from .state import AppliedState

logger = structlog.get_logger()

MODULE_TITLE = "PF1e Archetype Manager"


class ApplicatorError(Exception):
    """Base applicator error; surfaced to the user as a notification."""

    level: NotifyLevel = NotifyLevel.ERROR


class PermissionDeniedError(ApplicatorError):
    """Caller may not modify this subject."""


class ClassMismatchError(ApplicatorError):
    """Archetype belongs to a different class."""


class AlreadyAppliedError(ApplicatorError):
    level = NotifyLevel.WARN


class NotAppliedError(ApplicatorError):
    level = NotifyLevel.WARN


class InvalidFinalStateError(ApplicatorError):
    """Computed association list failed validation."""


@dataclass
class RestoreResult:
    success: bool
    message: str
    restored_count: int = 0


def class_tag(class_item: ClassItem) -> str:
    return class_item.tag or slugify(class_item.name)


class Applicator:
    """Commits archetype diffs to class items, one operation per subject at a time."""

    def __init__(
        self,
        permissions: PermissionOracle,
        notifier: Notifier,
        chat_log: ChatLog,
        locks: SubjectLockRegistry | None = None,
    ):
        self.permissions = permissions
        self.notifier = notifier
        self.chat_log = chat_log
        self.locks = locks or SubjectLockRegistry()

    # ── association building ──

    @staticmethod
    def build_new_associations(diff: list[DiffEntry]) -> list[dict]:
        """Association list produced by a diff.

        Touched entries carry only the archetype feature's uuid and level;
        base uuids of replaced or modified associations never survive.
        """
        associations = []
        for entry in diff:
            if entry.status == DiffStatus.UNCHANGED:
                associations.append(entry.original.to_dict())
        for entry in diff:
            if entry.status in (DiffStatus.ADDED, DiffStatus.MODIFIED):
                feature = entry.archetype_feature
                associations.append({"uuid": feature.uuid, "level": feature.level})
        return associations

    @classmethod
    def rebuild_for_remaining(
        cls, backup: list[dict], remaining: list[str], snapshots: dict[str, dict]
    ) -> list[dict]:
        """Replay the remaining archetypes, in application order, over the backup."""
        current = [Association.from_dict(a) for a in backup]
        for slug in remaining:
            snapshot = snapshots.get(slug)
            if not snapshot:
                logger.warning("archetype_snapshot_missing", slug=slug)
                continue
            diff = generate_diff(current, Archetype.from_snapshot(snapshot))
            current = [Association.from_dict(a) for a in cls.build_new_associations(diff)]
        return [a.to_dict() for a in current]

    # ── public operations ──

    async def apply(
        self, subject: Subject, class_item: ClassItem, archetype: Archetype, diff: list[DiffEntry]
    ) -> bool:
        key = ("apply", subject.id, class_item.id, archetype.slug)
        return await self._guarded(subject, key, self._do_apply(subject, class_item, archetype, diff))

    async def remove(self, subject: Subject, class_item: ClassItem, slug: str) -> bool:
        key = ("remove", subject.id, class_item.id, slug)
        return await self._guarded(subject, key, self._do_remove(subject, class_item, slug))

    async def restore_from_backup(self, subject: Subject, class_item: ClassItem) -> RestoreResult:
        """Emergency restore: drop every archetype and reinstate the original list."""
        key = ("restore", subject.id, class_item.id, None)
        try:
            async with self.locks.hold(subject.id, key):
                return await self._do_restore(subject, class_item)
        except DuplicateRequestError:
            return RestoreResult(False, "Restore already in progress")
        except ApplicatorError as e:
            await self._notify(e.level, f"{MODULE_TITLE} | {e}")
            return RestoreResult(False, str(e))
        except Exception as e:
            logger.exception("archetype_restore_failed", subject=subject.id)
            await self._notify(NotifyLevel.ERROR, f"{MODULE_TITLE} | Failed to restore from backup.")
            return RestoreResult(False, str(e))

    # ── internals ──

    async def _guarded(self, subject, key: tuple, operation) -> bool:
        try:
            async with self.locks.hold(subject.id, key):
                await operation
            return True
        except DuplicateRequestError:
            operation.close()
            logger.debug("archetype_request_duplicate", request=key)
            return False
        except ApplicatorError as e:
            logger.info("archetype_request_rejected", request=key, reason=str(e))
            await self._notify(e.level, f"{MODULE_TITLE} | {e}")
            return False
        except Exception:
            logger.exception("archetype_request_failed", request=key)
            await self._notify(
                NotifyLevel.ERROR, f"{MODULE_TITLE} | Failed to {key[0]} archetype. Changes were rolled back."
            )
            return False

    async def _check_permission(self, subject) -> None:
        if await self.permissions.is_privileged():
            return
        if await self.permissions.is_owner(subject):
            return
        raise PermissionDeniedError("You do not have permission to modify this character.")

    async def _snapshot(self, subject, class_item) -> tuple:
        return (
            await class_item.get_associations(),
            await class_item.get_state(),
            await subject.get_archetype_index(),
        )

    async def _rollback(self, subject, class_item, snapshot: tuple) -> None:
        associations, state, index = snapshot
        try:
            await class_item.set_associations(associations)
            await class_item.set_state(state)
            await subject.set_archetype_index(index)
            logger.info("archetype_rollback_complete", subject=subject.id, class_item=class_item.id)
        except Exception:
            logger.exception("archetype_rollback_failed", subject=subject.id, class_item=class_item.id)

    @staticmethod
    def _reconcile(
        archetype: Archetype, diff: list[DiffEntry], current: list[dict]
    ) -> tuple[Archetype, list[DiffEntry], list[str]]:
        """Fit a caller-supplied diff to the association list as it is now.

        Features still lacking a level are left out. The diff is regenerated
        against the live list when either those features were dropped or the
        list no longer holds the uuids the diff was computed from.
        """
        skipped = [f.name for f in archetype.features if f.level is None]
        if skipped:
            archetype = replace(archetype, features=[f for f in archetype.features if f.level is not None])

        seen = {entry.original.uuid for entry in diff if entry.original is not None}
        live = {a.get("uuid") for a in current}
        if not skipped and seen == live:
            return archetype, diff, skipped

        names = {entry.original.uuid: entry.original.resolved_name for entry in diff if entry.original is not None}
        base = []
        for data in current:
            assoc = Association.from_dict(data)
            if assoc.resolved_name is None:
                assoc.resolved_name = names.get(assoc.uuid)
            base.append(assoc)
        logger.info("archetype_diff_rebuilt", slug=archetype.slug, stale=seen != live, skipped=skipped)
        return archetype, generate_diff(base, archetype), skipped

    async def _do_apply(self, subject, class_item, archetype: Archetype, diff: list[DiffEntry]) -> None:
        slug = archetype.slug
        await self._check_permission(subject)

        state = AppliedState.load(await class_item.get_state())
        if state and slug in state.archetypes:
            raise AlreadyAppliedError(f"{archetype.name} is already applied to this class.")

        if archetype.class_name and not validate_class(archetype, class_item):
            raise ClassMismatchError(
                f"{archetype.name} is a {archetype.class_name} archetype "
                f"and cannot be applied to {class_item.name}."
            )

        before = await self._snapshot(subject, class_item)
        archetype, diff, skipped = self._reconcile(archetype, diff, before[0])

        new_associations = self.build_new_associations(diff)
        validation = validate_final_state(new_associations)
        if not validation.valid:
            raise InvalidFinalStateError("; ".join(validation.errors))

        try:
            if state is None:
                state = AppliedState(original_associations=before[0])
            await class_item.set_associations(new_associations)

            if slug not in state.archetypes:
                state.archetypes.append(slug)
            state.applied_archetype_data[slug] = archetype.snapshot()
            state.stamp()
            await class_item.set_state(state.dump())

            index = dict(before[2])
            tag = class_tag(class_item)
            index[tag] = list(dict.fromkeys([*index.get(tag, []), slug]))
            await subject.set_archetype_index(index)
        except Exception:
            await self._rollback(subject, class_item, before)
            raise

        await self._post_apply_message(subject, class_item, archetype, diff)
        if skipped:
            await self._notify(
                NotifyLevel.WARN,
                f"{MODULE_TITLE} | {archetype.name}: no level found for {', '.join(skipped)}. "
                "These features were not added.",
            )
        await self._notify(NotifyLevel.INFO, f"{MODULE_TITLE} | Applied {archetype.name} to {class_item.name}")
        logger.info("archetype_applied", slug=slug, subject=subject.id, class_item=class_item.id)

    async def _do_remove(self, subject, class_item, slug: str) -> None:
        await self._check_permission(subject)

        state = AppliedState.load(await class_item.get_state())
        if state is None or slug not in state.archetypes:
            raise NotAppliedError("This archetype is not applied to this class.")

        before = await self._snapshot(subject, class_item)
        remaining = [s for s in state.archetypes if s != slug]
        try:
            if remaining:
                rebuilt = self.rebuild_for_remaining(
                    state.original_associations, remaining, state.applied_archetype_data
                )
                await class_item.set_associations(rebuilt)
                state.archetypes = remaining
                state.applied_archetype_data.pop(slug, None)
                state.stamp()
                await class_item.set_state(state.dump())
            else:
                await class_item.set_associations(state.original_associations)
                await class_item.set_state(None)

            index = dict(before[2])
            tag = class_tag(class_item)
            slugs = [s for s in index.get(tag, []) if s != slug]
            if slugs:
                index[tag] = slugs
            else:
                index.pop(tag, None)
            await subject.set_archetype_index(index or None)
        except Exception:
            await self._rollback(subject, class_item, before)
            raise

        await self._post_log(
            {
                "title": MODULE_TITLE,
                "content": (
                    f"Archetype {slug} removed from {subject.name}'s {class_item.name}. "
                    "Class features restored to original state."
                ),
                "subject": subject.name,
                "archetype": slug,
            }
        )
        await self._notify(NotifyLevel.INFO, f"{MODULE_TITLE} | Removed archetype from {class_item.name}")
        logger.info(
            "archetype_removed", slug=slug, subject=subject.id, remaining=len(remaining)
        )

    async def _do_restore(self, subject, class_item) -> RestoreResult:
        await self._check_permission(subject)

        state = AppliedState.load(await class_item.get_state())
        if state is None:
            await self._notify(NotifyLevel.WARN, f"{MODULE_TITLE} | No backup found. Cannot restore.")
            return RestoreResult(False, "No backup found")

        before = await self._snapshot(subject, class_item)
        try:
            await class_item.set_associations(state.original_associations)
            await class_item.set_state(None)
            index = dict(before[2])
            index.pop(class_tag(class_item), None)
            await subject.set_archetype_index(index or None)
        except Exception:
            await self._rollback(subject, class_item, before)
            raise

        count = len(state.original_associations)
        await self._notify(
            NotifyLevel.INFO,
            f"{MODULE_TITLE} | Restored {class_item.name} to original state ({count} features).",
        )
        logger.info("archetype_backup_restored", subject=subject.id, restored=count)
        return RestoreResult(True, "Restored successfully", count)

    async def _post_apply_message(self, subject, class_item, archetype: Archetype, diff) -> None:
        replaced = [d.name for d in diff if d.status == DiffStatus.REMOVED]
        added = [d.name for d in diff if d.status == DiffStatus.ADDED]
        modified = [d.name for d in diff if d.status == DiffStatus.MODIFIED]

        lines = [f"{archetype.name} applied to {subject.name}'s {class_item.name}."]
        if replaced:
            lines.append(f"Replaced: {', '.join(replaced)}")
        if added:
            lines.append(f"Added: {', '.join(added)}")
        if modified:
            lines.append(f"Modified: {', '.join(modified)}")

        await self._post_log(
            {
                "title": MODULE_TITLE,
                "content": "\n".join(lines),
                "subject": subject.name,
                "archetype": archetype.slug,
                "replaced": replaced,
                "added": added,
                "modified": modified,
            }
        )

    async def _post_log(self, entry: dict) -> None:
        try:
            await self.chat_log.post_log(entry)
        except Exception as e:
            logger.warning("chat_log_post_failed", error=str(e))

    async def _notify(self, level: NotifyLevel, message: str) -> None:
        try:
            await self.notifier.notify(level, message)
        except Exception as e:
            logger.warning("notify_failed", error=str(e))
