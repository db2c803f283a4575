"""Fuzzy title similarity and same-item decisions."""

import logging
from collections.abc import Mapping

from rapidfuzz.distance import Levenshtein

from .models import MediaFingerprint, ProviderIds

logger = logging.getLogger(__name__)

DEFAULT_EXACT_THRESHOLD = 90
DEFAULT_CONDITIONAL_THRESHOLD = 85

# Years this far apart still count as the same release
YEAR_TOLERANCE = 1


def _tokens(text: str | None) -> list[str]:
    return text.split() if text else []


def token_set_ratio(a: str | None, b: str | None) -> int:
    """
    Score the overlap of the two titles' word sets.

    Args:
        a: First title
        b: Second title

    Returns:
        Intersection over union of the lower-cased token sets, scaled to 0-100
    """
    tokens1 = {token.lower() for token in _tokens(a)}
    tokens2 = {token.lower() for token in _tokens(b)}

    if not tokens1 and not tokens2:
        return 100
    if not tokens1 or not tokens2:
        return 0

    return round(len(tokens1 & tokens2) / len(tokens1 | tokens2) * 100)


def token_sort_ratio(a: str | None, b: str | None) -> int:
    """
    Score two titles after putting their words in alphabetical order.

    Args:
        a: First title
        b: Second title

    Returns:
        Levenshtein ratio of the sorted, space-joined tokens (0-100)
    """
    sorted1 = " ".join(sorted(_tokens(a), key=str.lower))
    sorted2 = " ".join(sorted(_tokens(b), key=str.lower))

    return levenshtein_ratio(sorted1, sorted2)


def levenshtein_ratio(a: str | None, b: str | None) -> int:
    """
    Score character-level similarity with unit-cost edit distance.

    Args:
        a: First string
        b: Second string

    Returns:
        (1 - distance / longer length) scaled to 0-100
    """
    if not a and not b:
        return 100
    if not a or not b:
        return 0

    lower1 = a.lower()
    lower2 = b.lower()
    distance = Levenshtein.distance(lower1, lower2)
    max_length = max(len(lower1), len(lower2))

    return round((1.0 - distance / max_length) * 100)


def calculate_similarity(title1: str | None, title2: str | None) -> int:
    """
    Calculate similarity between two titles.

    The best of the token set, token sort and Levenshtein scores is used, so
    reordered words or a few extra words still score through whichever method
    tolerates that difference.

    Args:
        title1: First (normalized) title
        title2: Second (normalized) title

    Returns:
        Similarity score from 0 (unrelated) to 100 (identical)

    Example:
        >>> calculate_similarity("the matrix", "matrix the")
        100
    """
    blank1 = not title1 or not title1.strip()
    blank2 = not title2 or not title2.strip()

    if blank1 and blank2:
        return 100
    if blank1 or blank2:
        return 0

    if title1.strip().lower() == title2.strip().lower():
        return 100

    return max(
        token_set_ratio(title1, title2),
        token_sort_ratio(title1, title2),
        levenshtein_ratio(title1, title2),
    )


def years_match(year1: int | None, year2: int | None) -> bool:
    """True if both years are known and at most a year apart."""
    if year1 is None or year2 is None:
        return False
    return abs(year1 - year2) <= YEAR_TOLERANCE


def _as_provider_ids(ids: Mapping[str, str] | None) -> ProviderIds:
    return ids if isinstance(ids, ProviderIds) else ProviderIds(ids)


def is_same_title(
    title1: str | None,
    title2: str | None,
    year1: int | None = None,
    year2: int | None = None,
    provider_ids1: Mapping[str, str] | None = None,
    provider_ids2: Mapping[str, str] | None = None,
    exact_threshold: int = DEFAULT_EXACT_THRESHOLD,
    conditional_threshold: int = DEFAULT_CONDITIONAL_THRESHOLD,
) -> bool:
    """
    Decide whether two titles refer to the same media item.

    Args:
        title1: First normalized title
        title2: Second normalized title
        year1: Release year of the first item, if known
        year2: Release year of the second item, if known
        provider_ids1: External ids of the first item
        provider_ids2: External ids of the second item
        exact_threshold: Similarity that is enough on its own
        conditional_threshold: Similarity that is enough with a matching year
            or a common provider

    Returns:
        True if the items should be treated as the same title

    A shared identifier value overrides title similarity entirely. Between the
    two thresholds, a common provider key counts as corroboration even when
    its values differ.
    """
    if not title1 or not title1.strip() or not title2 or not title2.strip():
        return False

    ids1 = _as_provider_ids(provider_ids1)
    ids2 = _as_provider_ids(provider_ids2)

    if ids1.shares_value_with(ids2):
        logger.debug(f"Provider id match: '{title1}' == '{title2}'")
        return True

    score = calculate_similarity(title1, title2)

    if score >= exact_threshold:
        return True

    if score >= conditional_threshold:
        corroborated = years_match(year1, year2) or ids1.shares_key_with(ids2)
        logger.debug(
            f"Conditional match for '{title1}' / '{title2}' (score {score}): "
            f"{'corroborated' if corroborated else 'not corroborated'}"
        )
        return corroborated

    return False


class FuzzyMatcher:
    """Applies the same-title decision with configured thresholds."""

    def __init__(
        self,
        exact_threshold: int = DEFAULT_EXACT_THRESHOLD,
        conditional_threshold: int = DEFAULT_CONDITIONAL_THRESHOLD,
    ):
        """
        Initialize the matcher.

        Args:
            exact_threshold: Similarity (0-100) that alone proves a match
            conditional_threshold: Similarity (0-100) that proves a match when
                corroborated by year or provider ids

        Raises:
            ValueError: If a threshold is outside 0-100 or conditional exceeds exact
        """
        for name, value in (
            ("exact_threshold", exact_threshold),
            ("conditional_threshold", conditional_threshold),
        ):
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")

        if conditional_threshold > exact_threshold:
            raise ValueError("conditional_threshold must not exceed exact_threshold")

        self.exact_threshold = exact_threshold
        self.conditional_threshold = conditional_threshold

    def calculate_similarity(self, title1: str | None, title2: str | None) -> int:
        """Similarity score (0-100) between two titles."""
        return calculate_similarity(title1, title2)

    def is_same_title(
        self,
        title1: str | None,
        title2: str | None,
        year1: int | None = None,
        year2: int | None = None,
        provider_ids1: Mapping[str, str] | None = None,
        provider_ids2: Mapping[str, str] | None = None,
    ) -> bool:
        """Same-title decision using this matcher's thresholds."""
        return is_same_title(
            title1,
            title2,
            year1,
            year2,
            provider_ids1,
            provider_ids2,
            exact_threshold=self.exact_threshold,
            conditional_threshold=self.conditional_threshold,
        )

    def is_same_fingerprint(self, first: MediaFingerprint, second: MediaFingerprint) -> bool:
        """
        Check whether two fingerprints describe the same item.

        Args:
            first: First fingerprint
            second: Second fingerprint

        Returns:
            True if the normalized titles, years and provider ids agree closely enough
        """
        return self.is_same_title(
            first.title_norm,
            second.title_norm,
            first.year,
            second.year,
            first.provider_ids,
            second.provider_ids,
        )
