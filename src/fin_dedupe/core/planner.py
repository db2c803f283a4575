"""Delete plan previews for duplicate groups."""

import logging
import os

from .models import DedupeConfig, DeletePlan, DuplicateGroup, MediaKey, OperationMode

logger = logging.getLogger(__name__)


def _normalize_folder(folder: str) -> str:
    return os.path.normcase(os.path.normpath(folder))


class DeletePlanner:
    """Works out what deleting the duplicates of a group would involve."""

    def __init__(self, operation_mode: OperationMode = OperationMode.DRY_RUN):
        """
        Initialize the planner.

        Args:
            operation_mode: Mode recorded on every plan; plans are previews either way
        """
        self.operation_mode = operation_mode

    @classmethod
    def from_config(cls, config: DedupeConfig) -> "DeletePlanner":
        """Create a planner using the config's default operation mode."""
        return cls(operation_mode=config.default_operation_mode)

    def plan_group(self, group: DuplicateGroup, keeper: MediaKey | None = None) -> DeletePlan:
        """
        Build a delete plan for one group.

        Args:
            group: Duplicate group to plan for
            keeper: Item to keep, defaults to the group's suggested keeper and
                then to its first candidate

        Returns:
            DeletePlan listing everything except the keeper

        Raises:
            ValueError: If the group is empty or the keeper is not one of its candidates
        """
        if not group.candidates:
            raise ValueError(f"Cannot plan an empty group: {group.group_key}")

        keeper = keeper or group.suggested_keeper or group.candidates[0].key
        kept = group.get_candidate(keeper)
        if kept is None:
            raise ValueError(f"Keeper {keeper} is not part of group {group.group_key}")

        deleted = [c for c in group.candidates if c.key != keeper]

        kept_folder = _normalize_folder(os.path.dirname(kept.path))
        root_folders = {_normalize_folder(c.root_folder) for c in group.candidates if c.root_folder}

        folders = {}
        for candidate in deleted:
            folder = os.path.dirname(candidate.path)
            normalized = _normalize_folder(folder)
            if normalized == kept_folder or normalized in root_folders:
                continue
            folders.setdefault(normalized, folder)

        plan = DeletePlan(
            media_type=group.media_type,
            keeper=keeper,
            to_delete=[c.key for c in deleted],
            total_bytes=sum(c.size_bytes or 0 for c in deleted),
            folders_to_remove_preview=sorted(folders.values()),
            operation_mode=self.operation_mode,
        )

        logger.debug(
            f"Plan for group {group.group_key}: keep {keeper}, "
            f"delete {plan.item_count} items ({plan.total_bytes} bytes)"
        )
        return plan

    def plan_groups(self, groups: list[DuplicateGroup]) -> list[DeletePlan]:
        """
        Build delete plans for every group that has something to delete.

        Args:
            groups: Duplicate groups

        Returns:
            One plan per group with at least two candidates
        """
        plans = [self.plan_group(group) for group in groups if group.candidate_count >= 2]

        logger.info(
            f"Built {len(plans)} delete plans ({self.operation_mode.value}): "
            f"{sum(p.item_count for p in plans)} items, {sum(p.total_bytes for p in plans)} bytes"
        )
        return plans

    def get_plan_summary(self, plans: list[DeletePlan]) -> str:
        """
        Generate a summary string for a set of plans.

        Args:
            plans: Plans from plan_groups

        Returns:
            Human-readable summary string
        """
        if not plans:
            return "No groups to process."

        total_items = sum(plan.item_count for plan in plans)
        total_mb = sum(plan.total_bytes for plan in plans) / (1024 * 1024)
        mode = "would be" if self.operation_mode == OperationMode.DRY_RUN else "will be"

        return (
            f"{len(plans)} groups: {total_items} items {mode} deleted, "
            f"freeing {total_mb:.1f} MB."
        )
