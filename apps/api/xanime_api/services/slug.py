"""
Slug and title helpers for the Series → Season → Episode hierarchy.
"""
import re
import string
import time
import unicodedata
from typing import Optional

_ASCII_SLUG_CHARS = frozenset(string.ascii_lowercase + string.digits)
_BASE36_DIGITS = string.digits + string.ascii_lowercase
_HYPHEN_RUN = re.compile(r"-+")

EPISODE_TYPES = ("regular", "ova", "special", "movie", "recap")


def to_base36(value: int) -> str:
    if value < 0:
        return "-" + to_base36(-value)
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def _slug_piece(char: str) -> str:
    if char in _ASCII_SLUG_CHARS:
        return char
    # Non-ASCII letters, digits and combining marks keep their identity as code points
    if char.isalnum() or unicodedata.category(char).startswith("M"):
        return f"u{ord(char):x}"
    return "-"


def generate_slug(text: str) -> str:
    """
    Convert text to a lowercase ASCII slug.

    Whitespace, punctuation and symbols collapse to single hyphens. Letters
    outside ASCII become ``u<hex>`` so titles in any script stay distinct.
    Returns "" when nothing usable remains (e.g. emoji only).

    >>> generate_slug("Iyashi no Sakura!")
    'iyashi-no-sakura'
    >>> generate_slug("さくら")
    'u3055u304fu3089'
    """
    normalized = unicodedata.normalize("NFKC", text or "").lower()
    slug = "".join(_slug_piece(char) for char in normalized)
    return _HYPHEN_RUN.sub("-", slug).strip("-")


def generate_series_slug(title_clean: str, timestamp_ms: Optional[int] = None) -> str:
    """Series slug, or ``series-<base36 ms timestamp>`` when the title yields nothing"""
    slug = generate_slug(title_clean)
    if slug:
        return slug
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"series-{to_base36(timestamp_ms)}"


def generate_season_slug(
    series_slug: str, season_number: int, season_name: Optional[str] = None
) -> str:
    if season_number == 0:
        return f"{series_slug}-main"

    if season_name:
        name_slug = generate_slug(season_name)
        if name_slug:
            return f"{series_slug}-{name_slug}"

    return f"{series_slug}-season-{season_number}"


def generate_episode_slug(
    season_slug: str, episode_number: int, episode_type: str = "regular"
) -> str:
    type_prefix = "episode" if episode_type == "regular" else episode_type
    return f"{season_slug}-{type_prefix}-{episode_number}"


_BRACKETED = re.compile(r"【[^】]*】|「[^」]*」|『[^』]*』|\([^)]*\)|\[[^\]]*\]")
_NUMBER_PREFIXES = (
    re.compile(r"^第\d+話[:：]?\s*"),
    re.compile(r"^Episode\s+\d+[:：]?\s*", re.IGNORECASE),
    re.compile(r"^EP\d+[:：]?\s*", re.IGNORECASE),
    re.compile(r"^\d+[:：]\s*"),
)
_WHITESPACE = re.compile(r"\s+")


def normalize_title(title_raw: str) -> str:
    """
    Derive title_clean from a raw title.

    Drops bracketed annotations (【完全版】, 「前編」, (...), [...]) and
    episode-number prefixes such as 第1話 / Episode 1: / EP1.

    >>> normalize_title("第1話　はじまり【完全版】")
    'はじまり'
    """
    clean = _WHITESPACE.sub(" ", title_raw.replace("　", " ")).strip()
    clean = _WHITESPACE.sub(" ", _BRACKETED.sub("", clean)).strip()
    for prefix in _NUMBER_PREFIXES:
        clean = prefix.sub("", clean)
    return clean.strip()


def generate_episode_number_str(episode_number: int, episode_type: str = "regular") -> str:
    if episode_type == "special":
        return f"SP{episode_number}"
    if episode_type == "movie":
        return f"Movie {episode_number}"
    if episode_type == "recap":
        return f"総集編 {episode_number}"
    return f"第{episode_number}話"
