"""Title normalization for duplicate detection."""

import re

from .models import NormalizationResult

# Edition, quality, codec, source and audio tags that say nothing about which title it is.
EDITION_TAGS = (
    "remastered", "extended", "extended edition", "extended cut", "director's cut",
    "directors cut", "uncut", "unrated", "theatrical", "theatrical cut", "special edition",
    "ultimate edition", "collector's edition", "anniversary edition", "restored",
    "480p", "576p", "720p", "1080p", "1080i", "2160p", "4k", "uhd", "hdr", "hdr10",
    "x264", "x265", "hevc", "h264", "h265", "avc",
    "bluray", "blu-ray", "bdrip", "brrip", "dvd", "dvdrip", "dvdscr", "webrip", "web-dl",
    "hdtv", "pdtv", "hdrip", "cam", "ts", "tc", "remux",
    "ac3", "dts", "aac", "mp3", "flac", "5.1", "7.1", "atmos",
)

ROMAN_NUMERALS = {
    "i": "1", "ii": "2", "iii": "3", "iv": "4", "v": "5", "vi": "6",
    "vii": "7", "viii": "8", "ix": "9", "x": "10", "xi": "11", "xii": "12",
}

NUMBER_WORDS = {
    "one": "1", "two": "2", "three": "3", "four": "4", "five": "5", "six": "6",
    "seven": "7", "eight": "8", "nine": "9", "ten": "10", "eleven": "11", "twelve": "12",
}


class TitleNormalizer:
    """Reduces human-authored titles to a canonical, comparable form."""

    # Non-nested [..], (..) or {..} spans
    BRACKETED_PATTERN = re.compile(r"\[[^\[\]]*\]|\([^()]*\)|\{[^{}]*\}")

    # Whole-word tags; a word boundary is any neighbour that is not a letter or digit.
    # Longer tags come first so "extended edition" wins over "extended".
    EDITION_TAG_PATTERN = re.compile(
        r"(?<![^\W_])(?:"
        + "|".join(re.escape(tag) for tag in sorted(EDITION_TAGS, key=len, reverse=True))
        + r")(?![^\W_])",
        re.IGNORECASE,
    )

    PUNCTUATION_PATTERN = re.compile(r"[^\w\s]|_")
    WHITESPACE_PATTERN = re.compile(r"\s+")

    # Trailing sequel marker, optionally "part "-prefixed; must follow at least one word
    SEQUEL_PATTERN = re.compile(
        r"\s+(part\s+)?([0-9]+|[ivx]+|" + "|".join(NUMBER_WORDS) + r")$",
        re.IGNORECASE,
    )

    def normalize(self, title: str | None) -> NormalizationResult:
        """
        Normalize a title for comparison.

        Args:
            title: Raw title as authored in the library

        Returns:
            NormalizationResult with the canonical title and what was stripped

        Example:
            >>> normalizer = TitleNormalizer()
            >>> normalizer.normalize("The Godfather Part II (1974) [1080p]").normalized_title
            'the godfather part 2'
        """
        if not title or not title.strip():
            return NormalizationResult(normalized_title="")

        normalized = title.strip()

        normalized, bracket_count = self.BRACKETED_PATTERN.subn(" ", normalized)
        normalized = normalized.strip()

        normalized, tag_count = self.EDITION_TAG_PATTERN.subn(" ", normalized.lower())

        normalized = self.PUNCTUATION_PATTERN.sub(" ", normalized)
        normalized = self.WHITESPACE_PATTERN.sub(" ", normalized).strip()

        normalized = self.normalize_sequel_number(normalized)

        return NormalizationResult(
            normalized_title=normalized.lower(),
            had_edition_tag=tag_count > 0,
            had_bracketed_content=bracket_count > 0,
        )

    def normalize_sequel_number(self, title: str) -> str:
        """
        Rewrite a trailing sequel marker to Arabic digits.

        Args:
            title: Whitespace-collapsed title

        Returns:
            Title with its last word rewritten when it is a sequel marker,
            otherwise the title unchanged

        Example:
            >>> TitleNormalizer().normalize_sequel_number("home alone two")
            'home alone 2'
        """
        match = self.SEQUEL_PATTERN.search(title)
        if not match:
            return title

        marker = match.group(2).lower()
        if marker.isdigit():
            # Plain integer form, "02" becomes "2"
            digits = marker.lstrip("0") or "0"
        else:
            digits = ROMAN_NUMERALS.get(marker) or NUMBER_WORDS.get(marker)
            if digits is None:
                return title

        return f"{title[:match.start()]} {match.group(1) or ''}{digits}"

    def strip_sequel_number(self, title: str) -> str:
        """Remove a trailing sequel marker (and its "part " prefix), leaving the series name."""
        return self.SEQUEL_PATTERN.sub("", title.strip()).strip()

    def are_from_same_series(self, title1: str | None, title2: str | None) -> bool:
        """
        Check whether two titles look like entries of the same franchise.

        Args:
            title1: First title
            title2: Second title

        Returns:
            True if the titles match once trailing sequel markers are removed

        Example:
            >>> TitleNormalizer().are_from_same_series("Die Hard", "Die Hard 2")
            True
        """
        if not title1 or not title1.strip() or not title2 or not title2.strip():
            return False

        base1 = self.strip_sequel_number(title1)
        base2 = self.strip_sequel_number(title2)

        return base1.casefold() == base2.casefold()
