"""URL slugs for tracks and folders, and deep-link resolution.

Deep links look like ``/repl/<folder-slug>/<folder-slug>/<track-slug>?step=<step>``.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar
from urllib.parse import parse_qs, urlsplit

from trackfs.schemas.node import FileSystemNode
from trackfs.services.graph import FileSystemGraph

logger = logging.getLogger(__name__)

URL_PREFIX = "/repl"
FALLBACK_SLUG = "untitled"
ROOT_FOLDER = "root"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
# Legacy folder ids (nanoid-style, 21 chars give or take)
FOLDER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{20,22}$")


class _Named(Protocol):
    name: str


class _FolderedTrack(Protocol):
    id: str | None
    name: str
    folder: str | None


class _FolderLike(Protocol):
    path: str


T = TypeVar("T", bound=_FolderedTrack)


@dataclass(frozen=True)
class FolderById:
    id: str


@dataclass(frozen=True)
class FolderByPath:
    path: str


FolderRef = FolderById | FolderByPath


@dataclass(frozen=True)
class TrackUrlPath:
    folder_path: str | None
    track_slug: str


def name_to_slug(name: str) -> str:
    slug = _NON_ALNUM.sub("-", name.strip().lower()).strip("-")
    return slug or FALLBACK_SLUG


def folder_path_to_slug(folder_path: str | None) -> str:
    if not folder_path:
        return ""
    segments = (name_to_slug(s) for s in folder_path.split("/"))
    return "/".join(s for s in segments if s and s != FALLBACK_SLUG)


def parse_folder_ref(value: str, known_ids: Iterable[str] | None = None) -> FolderRef:
    """Classify a stored folder value as an id or a path.

    With ``known_ids`` an id-shaped value only counts as an id when it is one
    of them, so a folder literally named like an id still reads as a path.
    """
    if FOLDER_ID_PATTERN.match(value):
        if known_ids is None or value in known_ids:
            return FolderById(value)
    return FolderByPath(value)


def resolve_folder_path(value: str | None, folders_map: Mapping[str, _FolderLike] | None = None) -> str | None:
    if not value or value == ROOT_FOLDER:
        return None
    ref = parse_folder_ref(value, folders_map.keys() if folders_map is not None else None)
    if isinstance(ref, FolderById):
        if folders_map is not None and ref.id in folders_map:
            return folders_map[ref.id].path
        return ref.id
    return ref.path


def generate_track_url_path(
    track_name: str,
    folder_path_or_id: str | None = None,
    folders_map: Mapping[str, _FolderLike] | None = None,
) -> str:
    track_slug = name_to_slug(track_name)
    folder_slug = folder_path_to_slug(resolve_folder_path(folder_path_or_id, folders_map))
    if folder_slug:
        return f"{URL_PREFIX}/{folder_slug}/{track_slug}"
    return f"{URL_PREFIX}/{track_slug}"


def parse_track_url_path(url_path: str) -> TrackUrlPath | None:
    path = url_path.split("?", 1)[0]
    prefix = URL_PREFIX + "/"
    if not path.startswith(prefix) or len(path) == len(prefix):
        return None
    segments = path[len(prefix):].split("/")
    track_slug = segments.pop()
    return TrackUrlPath(
        folder_path="/".join(segments) if segments else None,
        track_slug=track_slug,
    )


def extract_step_from_url(url_path: str) -> str | None:
    values = parse_qs(urlsplit(url_path).query).get("step")
    return values[0] if values and values[0] else None


def get_step_slug(step_name: str) -> str:
    return name_to_slug(step_name)


def find_step_index_by_name(steps: Sequence[_Named] | None, step_name: str) -> int | None:
    if not steps:
        return None
    wanted = name_to_slug(step_name)
    for index, step in enumerate(steps):
        if name_to_slug(step.name) == wanted:
            return index
    return None


def slug_to_display_name(slug: str) -> str:
    """Best-effort display name; punctuation dropped by slugging is not recoverable."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))


def find_track_by_folder_and_slug(tracks: Iterable[T], folder_path: str | None, track_slug: str) -> T | None:
    candidates = [
        t for t in tracks
        if name_to_slug(t.name) == track_slug and (t.folder or None) == folder_path
    ]
    if len(candidates) > 1:
        logger.warning(
            "Ambiguous track slug %r in folder %r, using first of %s",
            track_slug,
            folder_path,
            [t.name for t in candidates],
        )
    return candidates[0] if candidates else None


def find_track_by_slug(tracks: Iterable[T], slug: str) -> T | None:
    return next((t for t in tracks if name_to_slug(t.name) == slug), None)


def generate_unique_slug(
    name: str,
    existing_tracks: Iterable[_FolderedTrack],
    folder_path: str | None = None,
    exclude_id: str | None = None,
) -> str:
    base = name_to_slug(name)
    taken = {
        name_to_slug(t.name)
        for t in existing_tracks
        if t.id != exclude_id and (t.folder or None) == folder_path
    }
    if base not in taken:
        return base
    counter = 2
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"


def track_url_for_node(graph: FileSystemGraph, node_id: str) -> str | None:
    node = graph.get_node(node_id)
    if node is None:
        return None
    folder_path = graph.get_path(node.parent_id) if node.parent_id else None
    return generate_track_url_path(node.name, folder_path)


def resolve_track_url(graph: FileSystemGraph, url_path: str) -> FileSystemNode | None:
    """Find the track node a deep link points at, or None.

    Folder segments are compared in slug form against the graph-derived path
    of each candidate's parent. Duplicate matches are ordered by full path,
    then creation time, and the first one wins.
    """
    parsed = parse_track_url_path(url_path)
    if parsed is None:
        return None
    wanted_folder = parsed.folder_path or ""
    matches = [
        n for n in graph.get_all_nodes()
        if n.type == "track"
        and name_to_slug(n.name) == parsed.track_slug
        and folder_path_to_slug(graph.get_path(n.parent_id) if n.parent_id else None) == wanted_folder
    ]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning("Ambiguous deep link %r matches %d tracks", url_path, len(matches))
        matches.sort(key=lambda n: (graph.get_path(n.id).casefold(), n.created))
    return matches[0]
