"""Song name normalization shared by duplicate detection and the block list."""

import re
from typing import Optional, Tuple

_WHITESPACE = re.compile(r"\s+")


def normalize(value: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace runs to a single space"""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.lower().strip())


def fuzzy_match(first: Optional[str], second: Optional[str]) -> bool:
    return normalize(first) == normalize(second)


def songs_equal(first: Tuple[str, str], second: Tuple[str, str]) -> bool:
    """Compare two (song_name, artist) pairs field by field after normalization"""
    return fuzzy_match(first[0], second[0]) and fuzzy_match(first[1], second[1])


def matches_block_pattern(song_name: str, pattern: str) -> bool:
    """Case-insensitive substring containment of the pattern in the song name"""
    return normalize(pattern) in normalize(song_name)


def song_key(song_name: str, artist: str) -> Tuple[str, str]:
    """Grouping key for rankings"""
    return normalize(song_name), normalize(artist)
