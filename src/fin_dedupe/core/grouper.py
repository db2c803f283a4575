"""Duplicate grouping module for clustering library items by title."""

import logging
from collections import defaultdict
from collections.abc import Mapping

from .exclusion import ExclusionEngine
from .matcher import FuzzyMatcher
from .models import DedupeConfig, DuplicateGroup, MediaFingerprint, MediaKey, MediaType

logger = logging.getLogger(__name__)


class DuplicateGrouper:
    """Groups library items that refer to the same title."""

    def __init__(
        self,
        config: DedupeConfig | None = None,
        exclusion_engine: ExclusionEngine | None = None,
    ):
        """
        Initialize the grouper.

        Args:
            config: Dedupe configuration, defaults to DedupeConfig()
            exclusion_engine: Engine to filter candidates with; its glob rules
                are replaced by the ones in config.exclusions
        """
        self.config = config or DedupeConfig()
        self.exclusion_engine = exclusion_engine or ExclusionEngine()
        self.exclusion_engine.update_exclusion_rules(self.config.exclusions)
        self.matcher = FuzzyMatcher(
            exact_threshold=self.config.exact_match_threshold,
            conditional_threshold=self.config.conditional_match_threshold,
        )

        self.grouping_stats = {
            "candidates_seen": 0,
            "candidates_excluded": 0,
            "comparisons": 0,
            "groups_created": 0,
        }

    def filter_candidates(
        self,
        fingerprints: list[MediaFingerprint],
        library_ids: Mapping[MediaKey, str] | None = None,
    ) -> list[MediaFingerprint]:
        """
        Drop fingerprints that exclusion rules keep out of matching.

        Args:
            fingerprints: Candidates from a library scan
            library_ids: Library id of each candidate, keyed by MediaKey

        Returns:
            Candidates that are not excluded, in input order
        """
        if not self.config.library_roots:
            logger.warning("No library roots configured; every candidate will be excluded")

        library_ids = library_ids or {}
        included = []

        for fingerprint in fingerprints:
            library_id = library_ids.get(fingerprint.key)
            if self.exclusion_engine.is_excluded(
                fingerprint, library_id, self.config.exclusions, self.config.library_roots
            ):
                self.grouping_stats["candidates_excluded"] += 1
                continue
            included.append(fingerprint)

        logger.info(
            f"{len(included)} of {len(fingerprints)} candidates remain after exclusion rules"
        )
        return included

    def group_by_media_type(
        self, fingerprints: list[MediaFingerprint]
    ) -> dict[MediaType, list[MediaFingerprint]]:
        """Bucket fingerprints by media type; movies never match series."""
        groups: dict[MediaType, list[MediaFingerprint]] = defaultdict(list)
        for fingerprint in fingerprints:
            groups[fingerprint.media_type].append(fingerprint)
        return groups

    def create_duplicate_groups(
        self,
        fingerprints: list[MediaFingerprint],
        library_ids: Mapping[MediaKey, str] | None = None,
    ) -> list[DuplicateGroup]:
        """
        Create duplicate groups from scanned fingerprints.

        Args:
            fingerprints: Candidates from a library scan
            library_ids: Library id of each candidate, keyed by MediaKey

        Returns:
            DuplicateGroup objects with at least two candidates each, largest first

        Items are first filtered by exclusion rules. Any two remaining items of
        the same media type that the matcher considers the same title end up in
        the same group, including through a chain of matches.
        """
        self.grouping_stats = {
            "candidates_seen": len(fingerprints),
            "candidates_excluded": 0,
            "comparisons": 0,
            "groups_created": 0,
        }

        if not self.config.enabled:
            logger.info("Duplicate detection is disabled; no groups created")
            return []

        candidates = self.filter_candidates(fingerprints, library_ids)
        duplicate_groups = []

        for media_type, bucket in self.group_by_media_type(candidates).items():
            for component in self._find_matching_components(bucket):
                members = [bucket[i] for i in component]
                group = DuplicateGroup(
                    group_key=f"{media_type.value}:{members[0].title_norm}",
                    media_type=media_type,
                    candidates=members,
                    suggested_keeper=self.suggest_keeper(members),
                )
                duplicate_groups.append(group)
                logger.debug(f"Created duplicate group: {group}")

        duplicate_groups.sort(key=lambda g: -g.candidate_count)
        self.grouping_stats["groups_created"] = len(duplicate_groups)

        logger.info(
            f"Created {len(duplicate_groups)} duplicate groups from {len(candidates)} candidates "
            f"({self.grouping_stats['comparisons']} comparisons)"
        )
        return duplicate_groups

    def _find_matching_components(self, fingerprints: list[MediaFingerprint]) -> list[list[int]]:
        """
        Find groups of mutually connected matching fingerprints.

        Args:
            fingerprints: Fingerprints of one media type

        Returns:
            Sorted index lists, one per connected component with two or more members
        """
        matching_pairs = []

        for i in range(len(fingerprints)):
            for j in range(i + 1, len(fingerprints)):
                self.grouping_stats["comparisons"] += 1
                if self.matcher.is_same_fingerprint(fingerprints[i], fingerprints[j]):
                    matching_pairs.append((i, j))

        if not matching_pairs:
            return []

        # Build connected components (groups of mutually connected fingerprints)
        remaining = {index for pair in matching_pairs for index in pair}
        components = []

        while remaining:
            start = min(remaining)
            remaining.remove(start)
            component = {start}

            changed = True
            while changed:
                changed = False
                for i, j in matching_pairs:
                    if i in component and j in remaining:
                        component.add(j)
                        remaining.remove(j)
                        changed = True
                    elif j in component and i in remaining:
                        component.add(i)
                        remaining.remove(i)
                        changed = True

            components.append(sorted(component))

        return components

    def suggest_keeper(self, candidates: list[MediaFingerprint]) -> MediaKey | None:
        """
        Suggest which candidate of a group to keep.

        Args:
            candidates: Candidates of one group

        Returns:
            Key of the largest candidate (earliest one on ties or unknown sizes),
            or None for an empty list
        """
        if not candidates:
            return None

        best_index, _ = max(
            enumerate(candidates),
            key=lambda item: (item[1].size_bytes if item[1].size_bytes is not None else -1, -item[0]),
        )
        return candidates[best_index].key
