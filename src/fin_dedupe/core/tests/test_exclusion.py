"""Tests for exclusion engine module."""

import logging
from pathlib import Path

import pytest

from ..exclusion import (
    ExclusionEngine,
    GlobPatternError,
    convert_glob_to_regex,
    is_path_under_library_roots,
)
from ..models import ErrorCode, ExclusionSettings, MediaFingerprint, MediaKey, MediaType


def create_fingerprint(path: str, root_folder: str = "/media/movies") -> MediaFingerprint:
    """Create a test fingerprint for a path."""
    return MediaFingerprint(
        key=MediaKey(item_id="item-1", media_type=MediaType.MOVIE),
        title_raw="Test Movie",
        title_norm="test movie",
        year=2023,
        provider_ids={},
        path=path,
        root_folder=root_folder,
        size_bytes=1024 * 1024 * 1024,
    )


class TestIsExcluded:
    """Test cases for ExclusionEngine.is_excluded."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.engine = ExclusionEngine()

    def test_none_fingerprint_is_excluded(self) -> None:
        """Test that a missing fingerprint fails closed."""
        assert self.engine.is_excluded(None, "library1", ExclusionSettings(), ["/media"]) is True

    def test_path_outside_library_roots(self, caplog) -> None:
        """Test that paths outside every root are excluded and logged."""
        fingerprint = create_fingerprint("/outside/movie.mkv")

        with caplog.at_level(logging.WARNING, logger="fin_dedupe.core.exclusion"):
            result = self.engine.is_excluded(
                fingerprint, "library1", ExclusionSettings(), ["/media/movies", "/media/tv"]
            )

        assert result is True
        assert "outside library roots" in caplog.text

    def test_path_outside_library_roots_without_settings(self) -> None:
        """Test that containment is enforced even without settings."""
        fingerprint = create_fingerprint("/outside/movie.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media"]) is True

    def test_sibling_folder_is_not_under_root(self) -> None:
        """Test that a root is not matched as a bare string prefix."""
        fingerprint = create_fingerprint("/media/movies2/movie.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media/movies"]) is True

    def test_parent_traversal_escapes_root(self) -> None:
        """Test that ".." segments are resolved before the containment check."""
        fingerprint = create_fingerprint("/media/movies/../../etc/passwd")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media/movies"]) is True

    def test_no_library_roots(self) -> None:
        """Test that nothing is trusted without library roots."""
        fingerprint = create_fingerprint("/media/movies/test.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", ExclusionSettings(), []) is True
        assert self.engine.is_excluded(fingerprint, "library1", ExclusionSettings(), None) is True

    def test_blank_path_is_excluded(self) -> None:
        """Test that an unresolvable path fails closed."""
        fingerprint = create_fingerprint("   ")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media"]) is True

    def test_no_settings_inside_root(self) -> None:
        """Test that items inside a root are included when there is no policy."""
        fingerprint = create_fingerprint("/media/movies/test.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media"]) is False

    def test_no_exclusions(self) -> None:
        """Test that empty settings exclude nothing."""
        fingerprint = create_fingerprint("/media/movies/test.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", ExclusionSettings(), ["/media"]) is False

    def test_root_matching_ignores_case(self) -> None:
        """Test that root containment is case-insensitive."""
        fingerprint = create_fingerprint("/MEDIA/Movies/test.mkv")

        assert self.engine.is_excluded(fingerprint, "library1", None, ["/media/movies"]) is False

    def test_library_id_excluded(self) -> None:
        """Test exclusion by library id, ignoring case."""
        fingerprint = create_fingerprint("/media/movies/test.mkv")
        settings = ExclusionSettings(library_ids={"Excluded-Library"})

        assert self.engine.is_excluded(fingerprint, "excluded-library", settings, ["/media"]) is True
        assert self.engine.is_excluded(fingerprint, "other-library", settings, ["/media"]) is False
        assert self.engine.is_excluded(fingerprint, None, settings, ["/media"]) is False

    def test_path_prefix_excluded(self) -> None:
        """Test exclusion by path prefix."""
        fingerprint = create_fingerprint("/media/movies/archived/test.mkv")
        settings = ExclusionSettings(path_prefixes={"/media/movies/archived"})

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is True

    def test_path_prefix_ignores_case(self) -> None:
        """Test that path prefixes compare case-insensitively."""
        fingerprint = create_fingerprint("/media/movies/Archived/test.mkv")
        settings = ExclusionSettings(path_prefixes={"/MEDIA/movies/archived"})

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is True

    def test_path_prefix_not_matching(self) -> None:
        """Test that unrelated prefixes do not exclude."""
        fingerprint = create_fingerprint("/media/movies/current/test.mkv")
        settings = ExclusionSettings(path_prefixes={"/media/movies/archived", "   "})

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is False

    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("**/Archive/**", "/media/movies/Archive/old-movie.mkv", True),
            ("**/Archive/**", "/media/movies/Current/new-movie.mkv", False),
            ("*.sample.*", "/media/movies/test.sample.mkv", True),
            ("*.sample.*", "/media/movies/test.mkv", False),
        ],
    )
    def test_glob_patterns(self, pattern: str, path: str, expected: bool) -> None:
        """Test exclusion by compiled glob patterns."""
        fingerprint = create_fingerprint(path)
        settings = ExclusionSettings(glob_patterns={pattern})

        self.engine.update_exclusion_rules(settings)

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is expected

    def test_globs_require_update(self) -> None:
        """Test that globs only apply once compiled into the engine."""
        fingerprint = create_fingerprint("/media/movies/Archive/old-movie.mkv")
        settings = ExclusionSettings(glob_patterns={"**/Archive/**"})

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is False

        self.engine.update_exclusion_rules(settings)

        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is True

    def test_works_with_real_directories(self, tmp_path: Path) -> None:
        """Test containment and prefixes against an actual directory tree."""
        library = tmp_path / "library"
        archived = library / "archived"
        archived.mkdir(parents=True)
        movie = archived / "movie.mkv"
        movie.write_bytes(b"x")

        fingerprint = create_fingerprint(str(movie), root_folder=str(library))
        settings = ExclusionSettings(path_prefixes={str(archived)})

        assert self.engine.is_excluded(fingerprint, "library1", None, [str(library)]) is False
        assert self.engine.is_excluded(fingerprint, "library1", settings, [str(library)]) is True

    def test_symlink_leaving_root_is_excluded(self, tmp_path: Path) -> None:
        """Test that containment is checked on the symlink target."""
        library = tmp_path / "library"
        library.mkdir()
        other_disk = tmp_path / "disk2"
        other_disk.mkdir()
        (library / "link").symlink_to(other_disk, target_is_directory=True)
        (other_disk / "movie.mkv").write_bytes(b"x")

        fingerprint = create_fingerprint(str(library / "link" / "movie.mkv"), root_folder=str(library))

        assert self.engine.is_excluded(fingerprint, "library1", None, [str(library)]) is True
        assert self.engine.is_excluded(
            fingerprint, "library1", None, [str(library), str(other_disk)]
        ) is False

    def test_single_root_string(self) -> None:
        """Test that one root passed as a plain string is treated as one root."""
        inside = create_fingerprint("/m/a.mkv", root_folder="/m")
        outside = create_fingerprint("/elsewhere/a.mkv", root_folder="/m")

        assert self.engine.is_excluded(inside, "library1", None, "/m") is False
        assert self.engine.is_excluded(outside, "library1", None, "/m") is True


class TestUpdateExclusionRules:
    """Test cases for glob rule compilation."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.engine = ExclusionEngine()

    def test_invalid_pattern_is_skipped(self, caplog) -> None:
        """Test that one bad pattern does not disable the others."""
        settings = ExclusionSettings(glob_patterns={"[invalid", "**/Archive/**"})

        with caplog.at_level(logging.WARNING, logger="fin_dedupe.core.exclusion"):
            self.engine.update_exclusion_rules(settings)

        assert [c.pattern for c in self.engine.compiled_patterns] == ["**/Archive/**"]
        assert "Invalid glob pattern ignored" in caplog.text

        fingerprint = create_fingerprint("/media/movies/Archive/old.mkv")
        assert self.engine.is_excluded(fingerprint, "library1", settings, ["/media"]) is True

    def test_update_replaces_previous_rules(self) -> None:
        """Test that rules are rebuilt wholesale and old snapshots are untouched."""
        self.engine.update_exclusion_rules(ExclusionSettings(glob_patterns={"*.sample.*"}))
        before = self.engine.compiled_patterns

        self.engine.update_exclusion_rules(ExclusionSettings(glob_patterns={"**/Archive/**"}))

        assert [c.pattern for c in before] == ["*.sample.*"]
        assert [c.pattern for c in self.engine.compiled_patterns] == ["**/Archive/**"]

    def test_update_with_none_clears_rules(self) -> None:
        """Test that None settings clear all globs."""
        self.engine.update_exclusion_rules(ExclusionSettings(glob_patterns={"*.sample.*"}))
        self.engine.update_exclusion_rules(None)

        assert self.engine.compiled_patterns == ()

    def test_constructor_compiles_settings(self) -> None:
        """Test that initial settings are compiled."""
        engine = ExclusionEngine(ExclusionSettings(glob_patterns={"*.nfo", "**/extras/**"}))

        assert len(engine.compiled_patterns) == 2


class TestConvertGlobToRegex:
    """Test cases for glob compilation."""

    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("**/Archive/**", "/media/movies/Archive/old-movie.mkv", True),
            ("**/Archive/**", "/media/movies/archive/sub/dir/old.mkv", True),
            ("**/Archive/**", "/media/movies/Current/new-movie.mkv", False),
            ("**/Archive/**", "/media/movies/MyArchive/old.mkv", False),
            ("*.sample.*", "/media/movies/test.sample.mkv", True),
            ("*.sample.*", "/media/movies/test.mkv", False),
            ("**/*.{mkv,mp4}", "/a/b/c.MP4", True),
            ("**/*.{mkv,mp4}", "/a/b/c.avi", False),
            ("/media/*/x.mkv", "/media/movies/x.mkv", True),
            ("/media/*/x.mkv", "/media/movies/sub/x.mkv", False),
            ("/media/movie?.mkv", "/media/movie1.mkv", True),
            ("/media/movie?.mkv", "/media/movie12.mkv", False),
            ("/media/[!t]*.mkv", "/media/avatar.mkv", True),
            ("/media/[!t]*.mkv", "/media/titanic.mkv", False),
            ("/media/movie[0-9].mkv", "/media/movie7.mkv", True),
            ("movie(1).mkv", "/media/movies/movie(1).mkv", True),
            ("movie(1).mkv", "/media/movies/movie1.mkv", False),
            ("**\\Extras\\**", "/media/movies/extras/trailer.mkv", True),
        ],
    )
    def test_matching(self, pattern: str, path: str, expected: bool) -> None:
        """Test glob semantics against normalized paths."""
        regex = convert_glob_to_regex(pattern)

        assert bool(regex.match(path)) is expected

    @pytest.mark.parametrize("pattern", ["", "   ", None])
    def test_empty_pattern(self, pattern) -> None:
        """Test that empty patterns are invalid input."""
        with pytest.raises(GlobPatternError) as exc_info:
            convert_glob_to_regex(pattern)

        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    @pytest.mark.parametrize("pattern", ["[invalid", "*.{mkv", "/media/[z-a].mkv", "{a,{b}}"])
    def test_malformed_pattern(self, pattern: str) -> None:
        """Test that malformed patterns raise GlobPatternError."""
        with pytest.raises(GlobPatternError):
            convert_glob_to_regex(pattern)

    def test_glob_pattern_error_is_value_error(self) -> None:
        """Test the exception hierarchy."""
        assert issubclass(GlobPatternError, ValueError)


class TestValidation:
    """Test cases for configuration validators."""

    def test_validate_path_prefixes_valid(self) -> None:
        """Test prefixes inside a library root."""
        results = ExclusionEngine.validate_path_prefixes(["/media/movies", "/media/tv"], ["/media"])

        assert len(results) == 2
        assert all(r.is_valid for r in results)

    def test_validate_path_prefixes_outside_roots(self) -> None:
        """Test prefixes outside every library root."""
        results = ExclusionEngine.validate_path_prefixes(["/outside/movies"], ["/media"])

        assert len(results) == 1
        assert results[0].is_valid is False
        assert results[0].message == "Path prefix must be under a configured library root"

    def test_validate_path_prefixes_empty_entry(self) -> None:
        """Test blank prefixes."""
        results = ExclusionEngine.validate_path_prefixes(["", "  "], ["/media"])

        assert [r.is_valid for r in results] == [False, False]
        assert results[0].message == "Path prefix cannot be empty"

    def test_validate_path_prefixes_existence_is_advisory(self, tmp_path: Path) -> None:
        """Test that missing folders are accepted with a note."""
        existing = tmp_path / "movies"
        existing.mkdir()
        missing = tmp_path / "future"

        results = ExclusionEngine.validate_path_prefixes([str(existing), str(missing)], [str(tmp_path)])

        assert [r.is_valid for r in results] == [True, True]
        assert results[0].message == "Valid"
        assert results[1].message == "Path does not exist but will be accepted"
        assert results[1].value == str(missing)

    @pytest.mark.parametrize("prefixes", [None, []])
    def test_validate_path_prefixes_no_input(self, prefixes) -> None:
        """Test that no input gives no results."""
        assert ExclusionEngine.validate_path_prefixes(prefixes, ["/media"]) == []

    @pytest.mark.parametrize(
        "pattern, expected_valid",
        [
            ("**/Archive/**", True),
            ("*.mkv", True),
            ("**/*.{mkv,mp4}", True),
            ("[invalid", False),
            ("", False),
        ],
    )
    def test_validate_glob_patterns(self, pattern: str, expected_valid: bool) -> None:
        """Test glob validation results."""
        results = ExclusionEngine.validate_glob_patterns([pattern])

        assert len(results) == 1
        assert results[0].is_valid is expected_valid
        assert results[0].value == pattern

    def test_validate_glob_patterns_reports_reason(self) -> None:
        """Test that the compile failure reason is surfaced."""
        results = ExclusionEngine.validate_glob_patterns(["[invalid"])

        assert results[0].message.startswith("Invalid glob pattern: ")
        assert "character class" in results[0].message

    @pytest.mark.parametrize("patterns", [None, []])
    def test_validate_glob_patterns_no_input(self, patterns) -> None:
        """Test that no input gives no results."""
        assert ExclusionEngine.validate_glob_patterns(patterns) == []

    def test_is_path_under_library_roots(self) -> None:
        """Test the containment helper directly."""
        assert is_path_under_library_roots("/media/movies/a.mkv", ["/media"])
        assert is_path_under_library_roots("/media", ["/media"])
        assert not is_path_under_library_roots("/mediafiles/a.mkv", ["/media"])
        assert not is_path_under_library_roots("/media/a.mkv", ["", "   "])

    def test_single_string_arguments(self) -> None:
        """Test that lone strings are not iterated character by character."""
        assert not is_path_under_library_roots("/elsewhere/a.mkv", "/m")
        assert is_path_under_library_roots("/m/a.mkv", "/m")
        assert not ExclusionEngine.is_path_prefix_excluded("/media/x/a.mkv", "/media/y")
        assert not ExclusionEngine.is_library_excluded("k", "kids")
        assert len(ExclusionEngine.validate_glob_patterns("*.mkv")) == 1

        results = ExclusionEngine.validate_path_prefixes("/elsewhere/movies", "/m")

        assert len(results) == 1
        assert results[0].is_valid is False
