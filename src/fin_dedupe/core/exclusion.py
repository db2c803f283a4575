"""Exclusion rules deciding which library items may take part in matching."""

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path
from typing import NamedTuple

from .models import ErrorCode, ExclusionSettings, MediaFingerprint, ValidationResult

logger = logging.getLogger(__name__)

# Errors a malformed or inaccessible path can raise while being resolved
PATH_RESOLUTION_ERRORS = (OSError, ValueError, RuntimeError)


class GlobPatternError(ValueError):
    """Raised when a glob pattern cannot be compiled."""

    code = ErrorCode.INVALID_INPUT


class CompiledGlob(NamedTuple):
    """A user glob and the regular expression it compiles to."""

    pattern: str
    regex: re.Pattern[str]


def resolve_path(path: str) -> str:
    """
    Resolve a path to its absolute canonical form.

    Args:
        path: Path as supplied by the caller

    Returns:
        Absolute path with symlinks and ".." segments resolved

    Raises:
        ValueError: If the path is blank or malformed
        OSError: If the path cannot be resolved
    """
    if path is None or not str(path).strip():
        raise ValueError("Path cannot be empty")
    return str(Path(path).resolve())


def is_path_under_root(resolved_path: str, resolved_root: str) -> bool:
    """True if the resolved path is the root itself or lies beneath it (ignoring case)."""
    path = resolved_path.casefold()
    root = resolved_root.casefold()
    if path == root:
        return True
    return path.startswith(root.rstrip(os.sep) + os.sep)


def is_path_under_library_roots(path: str, library_roots: Iterable[str] | str | None) -> bool:
    """
    Check that a path lies under at least one library root.

    Args:
        path: Path to check
        library_roots: Allowed library root folders; a single string is one root

    Returns:
        True if the path is contained in a root; False if not, if there are no
        roots, or if the path cannot be resolved
    """
    if not library_roots:
        return False
    if isinstance(library_roots, str):
        library_roots = [library_roots]

    try:
        resolved_path = resolve_path(path)
    except PATH_RESOLUTION_ERRORS:
        return False

    for root in library_roots:
        try:
            resolved_root = resolve_path(root)
        except PATH_RESOLUTION_ERRORS:
            continue
        if is_path_under_root(resolved_path, resolved_root):
            return True

    return False


def _find_class_end(pattern: str, start: int) -> int:
    index = start + 1
    if index < len(pattern) and pattern[index] in "!^":
        index += 1
    # A "]" right after the opening bracket is a literal member
    if index < len(pattern) and pattern[index] == "]":
        index += 1
    return pattern.find("]", index)


def _translate_class(body: str) -> str:
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    members = "".join(f"\\{char}" if char in "\\[]^&~|" else char for char in body)
    return f"[{'^' if negate else ''}{members}]"


def _translate(pattern: str, in_braces: bool = False) -> str:
    parts = []
    index = 0
    length = len(pattern)

    while index < length:
        char = pattern[index]

        if char == "*":
            if pattern.startswith("**", index):
                index += 2
                while index < length and pattern[index] == "*":
                    index += 1
                if pattern.startswith("/", index):
                    # "**/" also matches zero directories
                    parts.append("(?:.*/)?")
                    index += 1
                else:
                    parts.append(".*")
            else:
                parts.append("[^/]*")
                index += 1

        elif char == "?":
            parts.append(".")
            index += 1

        elif char == "[":
            end = _find_class_end(pattern, index)
            if end < 0:
                raise GlobPatternError(f"Unterminated character class at position {index}")
            parts.append(_translate_class(pattern[index + 1:end]))
            index = end + 1

        elif char == "{":
            if in_braces:
                raise GlobPatternError("Nested brace groups are not supported")
            end = pattern.find("}", index + 1)
            if end < 0:
                raise GlobPatternError(f"Unterminated brace group at position {index}")
            alternatives = pattern[index + 1:end].split(",")
            parts.append(
                "(?:" + "|".join(_translate(alt, in_braces=True) for alt in alternatives) + ")"
            )
            index = end + 1

        else:
            parts.append(re.escape(char))
            index += 1

    return "".join(parts)


def convert_glob_to_regex(glob_pattern: str) -> re.Pattern[str]:
    """
    Convert a glob pattern to a case-insensitive regular expression.

    Args:
        glob_pattern: Glob using "**", "*", "?", "[...]" and "{a,b}"

    Returns:
        Compiled expression that must match the whole "/"-separated path.
        Patterns without a "/" are matched against the file name only.

    Raises:
        GlobPatternError: If the pattern is empty or malformed

    Example:
        >>> bool(convert_glob_to_regex("**/Archive/**").match("/media/movies/Archive/a.mkv"))
        True
    """
    if glob_pattern is None or not glob_pattern.strip():
        raise GlobPatternError("Glob pattern cannot be empty")

    pattern = glob_pattern.strip().replace("\\", "/")
    body = _translate(pattern)

    if "/" not in pattern:
        body = f"(?:.*/)?{body}"

    try:
        return re.compile(f"^{body}$", re.IGNORECASE)
    except re.error as e:
        raise GlobPatternError(str(e)) from e


class ExclusionEngine:
    """Decides whether library items are excluded from duplicate detection."""

    def __init__(self, exclusion_settings: ExclusionSettings | None = None):
        """
        Initialize the engine.

        Args:
            exclusion_settings: Initial rules to compile, if any
        """
        self._compiled_patterns: tuple[CompiledGlob, ...] = ()
        if exclusion_settings is not None:
            self.update_exclusion_rules(exclusion_settings)

    @property
    def compiled_patterns(self) -> tuple[CompiledGlob, ...]:
        """Snapshot of the currently active glob patterns."""
        return self._compiled_patterns

    def update_exclusion_rules(self, exclusion_settings: ExclusionSettings | None) -> None:
        """
        Recompile glob rules from settings.

        The new rule set is built completely before it replaces the old one, so
        concurrent is_excluded calls see either the old or the new set.
        Patterns that fail to compile are logged and skipped.

        Args:
            exclusion_settings: Settings to apply; None clears all glob rules
        """
        compiled = []
        patterns = exclusion_settings.glob_patterns if exclusion_settings else ()

        for pattern in sorted(patterns):
            try:
                regex = convert_glob_to_regex(pattern)
            except GlobPatternError as e:
                logger.warning(f"Invalid glob pattern ignored: {pattern!r} ({e})")
                continue
            compiled.append(CompiledGlob(pattern, regex))
            logger.debug(f"Compiled glob pattern: {pattern} -> {regex.pattern}")

        self._compiled_patterns = tuple(compiled)
        logger.info(f"Exclusion rules updated: {len(compiled)} glob patterns active")

    def is_excluded(
        self,
        fingerprint: MediaFingerprint | None,
        library_id: str | None,
        exclusion_settings: ExclusionSettings | None,
        library_roots: Iterable[str] | str | None,
    ) -> bool:
        """
        Determine if a media item should be excluded from processing.

        Args:
            fingerprint: Item to check
            library_id: Id of the library the item belongs to
            exclusion_settings: Current exclusion settings
            library_roots: Library root folders the item must live under

        Returns:
            True if the item must not take part in matching or deletion

        Items outside every library root are always excluded, even without
        settings. Never raises.
        """
        if fingerprint is None:
            return True

        if not is_path_under_library_roots(fingerprint.path, library_roots):
            logger.warning(f"Path outside library roots excluded for security: {fingerprint.path}")
            return True

        if exclusion_settings is None:
            return False

        if self.is_library_excluded(library_id, exclusion_settings.library_ids):
            logger.debug(f"Item excluded by library id: {library_id}")
            return True

        if self.is_path_prefix_excluded(fingerprint.path, exclusion_settings.path_prefixes):
            logger.debug(f"Item excluded by path prefix: {fingerprint.path}")
            return True

        if self.is_glob_excluded(fingerprint.path):
            logger.debug(f"Item excluded by glob pattern: {fingerprint.path}")
            return True

        return False

    @staticmethod
    def is_library_excluded(library_id: str | None, excluded_library_ids: Iterable[str]) -> bool:
        """True if the library id is in the excluded set (ignoring case)."""
        if not library_id or not library_id.strip() or not excluded_library_ids:
            return False
        if isinstance(excluded_library_ids, str):
            excluded_library_ids = [excluded_library_ids]

        folded = library_id.strip().casefold()
        return any(
            excluded and excluded.strip().casefold() == folded
            for excluded in excluded_library_ids
        )

    @staticmethod
    def is_path_prefix_excluded(path: str, excluded_prefixes: Iterable[str]) -> bool:
        """True if the resolved path starts with any resolved excluded prefix (ignoring case)."""
        if not excluded_prefixes:
            return False
        if isinstance(excluded_prefixes, str):
            excluded_prefixes = [excluded_prefixes]

        try:
            resolved_path = resolve_path(path).casefold()
        except PATH_RESOLUTION_ERRORS:
            return False

        for prefix in excluded_prefixes:
            try:
                resolved_prefix = resolve_path(prefix).casefold()
            except PATH_RESOLUTION_ERRORS:
                continue
            if resolved_path.startswith(resolved_prefix):
                return True

        return False

    def is_glob_excluded(self, path: str) -> bool:
        """True if the resolved path matches any active glob pattern."""
        patterns = self._compiled_patterns
        if not patterns:
            return False

        try:
            normalized_path = resolve_path(path).replace("\\", "/")
        except PATH_RESOLUTION_ERRORS:
            return False

        return any(compiled.regex.match(normalized_path) for compiled in patterns)

    @staticmethod
    def validate_path_prefixes(
        path_prefixes: Iterable[str] | None, library_roots: Iterable[str] | None
    ) -> list[ValidationResult]:
        """
        Validate user-entered path prefixes.

        Args:
            path_prefixes: Prefixes to validate
            library_roots: Library root folders prefixes must lie under

        Returns:
            One ValidationResult per prefix. Prefixes that do not exist yet are
            still valid since they may apply to future content.
        """
        results: list[ValidationResult] = []
        if not path_prefixes:
            return results

        if isinstance(path_prefixes, str):
            path_prefixes = [path_prefixes]
        roots = [library_roots] if isinstance(library_roots, str) else list(library_roots or ())

        for prefix in path_prefixes:
            if prefix is None or not prefix.strip():
                results.append(
                    ValidationResult(value=prefix, is_valid=False, message="Path prefix cannot be empty")
                )
                continue

            try:
                resolved = resolve_path(prefix)
            except PATH_RESOLUTION_ERRORS as e:
                results.append(
                    ValidationResult(value=prefix, is_valid=False, message=f"Invalid path: {e}")
                )
                continue

            if not is_path_under_library_roots(resolved, roots):
                results.append(
                    ValidationResult(
                        value=prefix,
                        is_valid=False,
                        message="Path prefix must be under a configured library root",
                    )
                )
                continue

            try:
                exists = Path(resolved).exists()
            except OSError:
                exists = False

            message = "Valid" if exists else "Path does not exist but will be accepted"
            results.append(ValidationResult(value=prefix, is_valid=True, message=message))

        return results

    @staticmethod
    def validate_glob_patterns(glob_patterns: Iterable[str] | None) -> list[ValidationResult]:
        """
        Validate user-entered glob patterns.

        Args:
            glob_patterns: Patterns to validate

        Returns:
            One ValidationResult per pattern
        """
        results: list[ValidationResult] = []
        if not glob_patterns:
            return results
        if isinstance(glob_patterns, str):
            glob_patterns = [glob_patterns]

        for pattern in glob_patterns:
            if pattern is None or not pattern.strip():
                results.append(
                    ValidationResult(value=pattern, is_valid=False, message="Glob pattern cannot be empty")
                )
                continue

            try:
                convert_glob_to_regex(pattern)
            except GlobPatternError as e:
                results.append(
                    ValidationResult(value=pattern, is_valid=False, message=f"Invalid glob pattern: {e}")
                )
                continue

            results.append(ValidationResult(value=pattern, is_valid=True, message="Valid glob pattern"))

        return results
