"""Pydantic models for media duplicate detection."""

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
    field_validator,
    model_validator,
)
from pydantic_core import core_schema


class MediaType(str, Enum):
    """Kinds of library items considered for duplicate detection."""

    SERIES = "Series"
    MOVIE = "Movie"


class OperationMode(str, Enum):
    """Whether a delete plan is a preview or meant to be executed."""

    DRY_RUN = "DryRun"
    EXECUTE = "Execute"


class ErrorCode(str, Enum):
    """Failure kinds shared with callers of the core."""

    NOT_FOUND = "NotFound"
    PERMISSION_DENIED = "PermissionDenied"
    EXCLUDED = "Excluded"
    CONFLICT = "Conflict"
    INVALID_INPUT = "InvalidInput"
    PATH_VALIDATION_FAILED = "PathValidationFailed"
    CANCELLED = "Cancelled"
    INTERNAL_ERROR = "InternalError"


class ProviderIds(Mapping[str, str]):
    """
    External provider identifiers (imdb, tmdb, tvdb, ...) for one item.

    Keys are looked up case-insensitively while the first spelling seen is kept
    for display. Entries with a blank name or value are dropped, and later
    entries replace earlier ones whose key differs only by case.

    Example:
        >>> ids = ProviderIds({"Imdb": "tt0133093"})
        >>> ids["IMDB"]
        'tt0133093'
    """

    __slots__ = ("_items",)

    def __init__(self, ids: Mapping[str, str] | Iterable[tuple[str, str]] | None = None):
        items: dict[str, tuple[str, str]] = {}
        pairs = ids.items() if isinstance(ids, Mapping) else (ids or ())

        for name, value in pairs:
            if name is None or value is None:
                continue
            name = str(name).strip()
            value = str(value).strip()
            if not name or not value:
                continue

            folded = name.casefold()
            display_name = items[folded][0] if folded in items else name
            items[folded] = (display_name, value)

        self._items = items

    def __getitem__(self, key: str) -> str:
        if not isinstance(key, str):
            raise KeyError(key)
        return self._items[key.casefold()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ProviderIds):
            return self._folded() == other._folded()
        if isinstance(other, Mapping):
            return self == ProviderIds(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ProviderIds({dict(self.items())!r})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda ids: dict(ids.items())
            ),
        )

    @classmethod
    def _validate(cls, value: Any) -> "ProviderIds":
        if isinstance(value, ProviderIds):
            return value
        if value is None or isinstance(value, Mapping):
            return cls(value)
        raise ValueError(f"Provider ids must be a mapping, got {type(value).__name__}")

    def _folded(self) -> dict[str, str]:
        return {folded: value for folded, (_, value) in self._items.items()}

    def shares_value_with(self, other: "ProviderIds") -> bool:
        """True if any provider present on both sides has the same identifier (ignoring case)."""
        for folded, (_, value) in self._items.items():
            match = other._items.get(folded)
            if match is not None and match[1].casefold() == value.casefold():
                return True
        return False

    def shares_key_with(self, other: "ProviderIds") -> bool:
        """True if both sides carry an identifier from at least one common provider."""
        return not self._items.keys().isdisjoint(other._items.keys())


class MediaKey(BaseModel):
    """Identity of a library item: item id plus media kind."""

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1, description="Library item identifier")
    media_type: MediaType = Field(..., description="Series or Movie")

    def __str__(self) -> str:
        return f"{self.media_type.value}:{self.item_id}"


class MediaFingerprint(BaseModel):
    """Read-only snapshot of a library item used for matching."""

    model_config = ConfigDict(frozen=True)

    key: MediaKey = Field(..., description="Item identity")
    title_raw: str = Field(..., description="Title as authored in the library")
    title_norm: str = Field(..., description="Canonical title used for comparison")
    year: int | None = Field(None, description="Release year, if known")
    provider_ids: ProviderIds = Field(
        default_factory=ProviderIds, description="External provider identifiers"
    )
    path: str = Field(..., description="File system path of the media")
    root_folder: str = Field(..., description="Library root folder the item was found under")
    size_bytes: int | None = Field(None, ge=0, description="Size on disk, if known")

    @property
    def media_type(self) -> MediaType:
        """Media kind of the item."""
        return self.key.media_type

    @property
    def size_mb(self) -> float:
        """Size in megabytes, 0.0 when unknown."""
        return (self.size_bytes or 0) / (1024 * 1024)

    def __str__(self) -> str:
        year = f" ({self.year})" if self.year else ""
        return f"{self.title_raw}{year} [{self.key}]"


class NormalizationResult(BaseModel):
    """Canonical title plus flags describing what normalization stripped."""

    model_config = ConfigDict(frozen=True)

    normalized_title: str = Field(..., description="Canonical comparable title")
    had_edition_tag: bool = Field(False, description="Edition or quality tags were removed")
    had_bracketed_content: bool = Field(False, description="Bracketed spans were removed")


class ExclusionSettings(BaseModel):
    """User-configured exclusion rules. Any matching rule excludes an item."""

    library_ids: set[str] = Field(default_factory=set, description="Library ids to skip")
    path_prefixes: set[str] = Field(
        default_factory=set, description="Absolute path prefixes to skip"
    )
    glob_patterns: set[str] = Field(default_factory=set, description="Glob patterns to skip")


class ValidationResult(BaseModel):
    """Outcome of pre-flighting one user-entered exclusion rule."""

    value: str | None = Field(..., description="The value that was validated")
    is_valid: bool = Field(..., description="Whether the value is usable")
    message: str = Field(..., description="Human-readable explanation")


class DuplicateGroup(BaseModel):
    """A set of library items believed to be the same title."""

    group_key: str = Field(..., description="Identifier for this group")
    media_type: MediaType = Field(..., description="Media kind shared by all candidates")
    candidates: list[MediaFingerprint] = Field(
        default_factory=list, description="Items in this group"
    )
    suggested_keeper: MediaKey | None = Field(None, description="Suggested item to keep")

    @property
    def candidate_count(self) -> int:
        """Number of candidates in this group."""
        return len(self.candidates)

    @property
    def total_bytes(self) -> int:
        """Combined known size of all candidates."""
        return sum(c.size_bytes or 0 for c in self.candidates)

    def get_candidate(self, key: MediaKey) -> MediaFingerprint | None:
        """Look up a candidate by key."""
        return next((c for c in self.candidates if c.key == key), None)

    def __str__(self) -> str:
        return f"Duplicate group '{self.group_key}' ({self.candidate_count} candidates)"


class DeletePlan(BaseModel):
    """Preview of which items of a group would be deleted and which kept."""

    plan_id: UUID = Field(default_factory=uuid4, description="Unique plan identifier")
    media_type: MediaType = Field(..., description="Media kind of the group")
    keeper: MediaKey = Field(..., description="Item to keep")
    to_delete: list[MediaKey] = Field(default_factory=list, description="Items to delete")
    total_bytes: int = Field(0, ge=0, description="Bytes freed by the deletion")
    folders_to_remove_preview: list[str] = Field(
        default_factory=list, description="Folders that may be left empty"
    )
    operation_mode: OperationMode = Field(
        OperationMode.DRY_RUN, description="Dry run or execute"
    )

    @property
    def item_count(self) -> int:
        """Number of items to delete."""
        return len(self.to_delete)


class DedupeConfig(BaseModel):
    """Configuration settings for duplicate detection."""

    enabled: bool = Field(default=True, description="Enable duplicate detection")
    default_operation_mode: OperationMode = Field(
        default=OperationMode.DRY_RUN, description="Mode used for new delete plans"
    )
    exact_match_threshold: int = Field(
        default=90, ge=0, le=100, description="Similarity that alone proves a match"
    )
    conditional_match_threshold: int = Field(
        default=85,
        ge=0,
        le=100,
        description="Similarity that proves a match when year or provider ids agree",
    )
    exclusions: ExclusionSettings = Field(
        default_factory=ExclusionSettings, description="Exclusion rules"
    )
    library_roots: list[str] = Field(
        default_factory=list, description="Library root folders items must live under"
    )
    enable_logging: bool = Field(default=True, description="Enable application logging")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the level is a standard logging level name."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_thresholds(self) -> "DedupeConfig":
        """The conditional threshold cannot be stricter than the exact one."""
        if self.conditional_match_threshold > self.exact_match_threshold:
            raise ValueError(
                "conditional_match_threshold must not exceed exact_match_threshold"
            )
        return self
