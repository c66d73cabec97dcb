"""Track name rules: non-empty, bounded, URL-safe, unique per folder (case-insensitive)."""

import re
from collections.abc import Iterable
from typing import Protocol

MAX_TRACK_NAME_LENGTH = 100
INVALID_NAME_CHARS = re.compile(r'[<>:"|?*]')


class _FolderedTrack(Protocol):
    id: str | None
    name: str
    folder: str | None


def is_track_name_available(
    name: str,
    folder: str | None,
    tracks: Iterable[_FolderedTrack],
    exclude_id: str | None = None,
) -> bool:
    wanted = name.strip().lower()
    if not wanted:
        return False
    folder = folder or None
    return not any(
        (t.folder or None) == folder and t.name.strip().lower() == wanted
        for t in tracks
        if exclude_id is None or t.id != exclude_id
    )


def generate_unique_track_name(base_name: str, folder: str | None, tracks: Iterable[_FolderedTrack]) -> str:
    tracks = list(tracks)
    base = base_name.strip()
    if is_track_name_available(base, folder, tracks):
        return base
    counter = 2
    while not is_track_name_available(f"{base} {counter}", folder, tracks):
        counter += 1
    return f"{base} {counter}"


def validate_track_name(
    name: str,
    folder: str | None,
    tracks: Iterable[_FolderedTrack],
    exclude_id: str | None = None,
) -> str | None:
    """Return a user-facing error message, or None when the name is acceptable."""
    trimmed = name.strip()
    if not trimmed:
        return "Track name cannot be empty"
    if len(trimmed) > MAX_TRACK_NAME_LENGTH:
        return f"Track name is too long (max {MAX_TRACK_NAME_LENGTH} characters)"
    if INVALID_NAME_CHARS.search(trimmed):
        return "Track name contains invalid characters"
    if not is_track_name_available(trimmed, folder, tracks, exclude_id):
        return f'A track named "{trimmed}" already exists in {folder or "root folder"}'
    return None
