"""Core functionality for media duplicate detection."""

from .exclusion import ExclusionEngine, GlobPatternError, convert_glob_to_regex
from .grouper import DuplicateGrouper
from .matcher import (
    FuzzyMatcher,
    calculate_similarity,
    is_same_title,
    levenshtein_ratio,
    token_set_ratio,
    token_sort_ratio,
)
from .models import (
    DedupeConfig,
    DeletePlan,
    DuplicateGroup,
    ErrorCode,
    ExclusionSettings,
    MediaFingerprint,
    MediaKey,
    MediaType,
    NormalizationResult,
    OperationMode,
    ProviderIds,
    ValidationResult,
)
from .normalizer import TitleNormalizer
from .planner import DeletePlanner

__all__ = [
    "DedupeConfig",
    "DeletePlan",
    "DeletePlanner",
    "DuplicateGroup",
    "DuplicateGrouper",
    "ErrorCode",
    "ExclusionEngine",
    "ExclusionSettings",
    "FuzzyMatcher",
    "GlobPatternError",
    "MediaFingerprint",
    "MediaKey",
    "MediaType",
    "NormalizationResult",
    "OperationMode",
    "ProviderIds",
    "TitleNormalizer",
    "ValidationResult",
    "calculate_similarity",
    "convert_glob_to_regex",
    "is_same_title",
    "levenshtein_ratio",
    "token_set_ratio",
    "token_sort_ratio",
]
