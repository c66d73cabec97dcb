"""Convert the legacy flat folders/tracks tables into file system graph nodes.

Legacy folders identify their parent by path (``parent``); rows written by
older clients store the parent folder's id there instead, and tracks store
either a folder path or a folder id in ``folder``. Both id forms are converted
to paths on input and never reach the graph model.

The migration is not transactional: folders and tracks are inserted as two
batches and a failed batch is reported without undoing the other one.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.database import async_session_maker
from trackfs.models import LegacyFolder, LegacyTrack, Node
from trackfs.schemas.legacy import LegacyFolderRecord, LegacyTrackRecord, MigrationResult, MigrationStatus, RootSummary
from trackfs.schemas.node import FileSystemNode, TrackStep, new_node_id
from trackfs.services.graph import FileSystemGraph
from trackfs.services.nodes_tree import get_user_nodes, load_user_graph, node_to_row
from trackfs.services.slugs import FolderById, parse_folder_ref, resolve_folder_path

logger = logging.getLogger(__name__)


@dataclass
class ImportPlan:
    folders: list[FileSystemNode] = field(default_factory=list)
    tracks: list[FileSystemNode] = field(default_factory=list)
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)


def normalize_legacy_parents(folders: Iterable[LegacyFolderRecord]) -> list[LegacyFolderRecord]:
    """Rewrite id-valued ``parent`` fields to the parent folder's path."""
    folders = list(folders)
    by_id = {f.id: f for f in folders if f.id}
    normalized = []
    for folder in folders:
        parent = folder.parent or None
        if parent:
            ref = parse_folder_ref(parent, by_id.keys())
            if isinstance(ref, FolderById):
                parent = by_id[ref.id].path
        normalized.append(folder.model_copy(update={"parent": parent}))
    return normalized


def _legacy_steps(raw: list[dict[str, Any]] | None) -> list[TrackStep] | None:
    if not raw:
        return None
    steps = []
    for index, step in enumerate(raw):
        if not isinstance(step, dict):
            continue
        values = {k: v for k, v in step.items() if k in TrackStep.model_fields and v is not None}
        values.setdefault("name", f"Step {index + 1}")
        steps.append(TrackStep(**values))
    return steps


def _parent_path_candidates(folder: LegacyFolderRecord) -> list[str]:
    candidates = []
    if folder.parent:
        candidates.append(folder.parent)
    if "/" in folder.path:
        candidates.append(folder.path.rsplit("/", 1)[0])
    return candidates


def plan_legacy_import(
    folders: Iterable[LegacyFolderRecord],
    tracks: Iterable[LegacyTrackRecord],
    user_id: str,
    existing: Sequence[FileSystemNode] = (),
) -> ImportPlan:
    """Build the graph nodes to insert for a legacy library.

    Existing nodes are matched by (type, name, parent) so that re-running an
    import does not duplicate what a previous run already created.
    """
    plan = ImportPlan()
    existing_graph = FileSystemGraph(existing)
    known: dict[tuple[str, str, str | None], str] = {
        (n.type, n.name, n.parent_id): n.id for n in existing
    }
    path_to_id: dict[str, str] = {}
    for node in existing:
        if node.type == "folder":
            path_to_id.setdefault(existing_graph.get_path(node.id), node.id)

    folders = normalize_legacy_parents(folders)
    # parents first, whatever order the rows were stored in
    folders.sort(key=lambda f: f.path.count("/"))

    for folder in folders:
        candidates = _parent_path_candidates(folder)
        parent_id = next((path_to_id[p] for p in candidates if p in path_to_id), None)
        if candidates and parent_id is None:
            plan.warnings.append(f'Folder "{folder.path}": parent "{candidates[0]}" not found, placed at root')

        key = ("folder", folder.name, parent_id)
        if key in known:
            path_to_id.setdefault(folder.path, known[key])
            plan.skipped += 1
            continue

        node = FileSystemNode(
            id=new_node_id(),
            name=folder.name,
            type="folder",
            parent_id=parent_id,
            user_id=user_id,
            created=folder.created,
            modified=folder.created,
        )
        known[key] = node.id
        path_to_id[folder.path] = node.id
        plan.folders.append(node)

    folders_by_id = {f.id: f for f in folders if f.id}
    for track in tracks:
        folder_path = resolve_folder_path(track.folder, folders_by_id)
        parent_id = path_to_id.get(folder_path) if folder_path else None
        if folder_path and parent_id is None:
            plan.warnings.append(f'Track "{track.name}": folder "{folder_path}" not found, placed at root')

        key = ("track", track.name, parent_id)
        if key in known:
            plan.skipped += 1
            continue

        node = FileSystemNode(
            id=new_node_id(),
            name=track.name,
            type="track",
            parent_id=parent_id,
            user_id=user_id,
            created=track.created,
            modified=track.modified,
            code=track.code or "",
            is_multitrack=bool(track.is_multitrack),
            steps=_legacy_steps(track.steps),
            active_step=track.active_step or 0,
        )
        known[key] = node.id
        plan.tracks.append(node)

    return plan


async def _insert_batch(db: AsyncSession, nodes: list[FileSystemNode], label: str, result: MigrationResult) -> int:
    if not nodes:
        return 0
    db.add_all([node_to_row(n) for n in nodes])
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to insert %s batch: %s", label.lower(), e)
        result.errors.append(f"{label}: {e}")
        return 0
    return len(nodes)


async def import_legacy_library(
    db: AsyncSession,
    user_id: str,
    folders: Iterable[LegacyFolderRecord],
    tracks: Iterable[LegacyTrackRecord],
) -> MigrationResult:
    existing = await get_user_nodes(db, user_id)
    plan = plan_legacy_import(folders, tracks, user_id, existing)
    result = MigrationResult(skipped=plan.skipped, warnings=plan.warnings)

    result.folders_created = await _insert_batch(db, plan.folders, "Folders", result)
    if plan.folders and not result.folders_created:
        failed = {n.id for n in plan.folders}
        for track in plan.tracks:
            if track.parent_id in failed:
                track.parent_id = None
                result.warnings.append(f'Track "{track.name}": folder was not created, placed at root')
    result.tracks_created = await _insert_batch(db, plan.tracks, "Tracks", result)
    result.nodes_created = result.folders_created + result.tracks_created

    # Verify what actually landed in the store
    graph = await load_user_graph(db, user_id)
    result.validation = graph.validate_hierarchy()
    result.roots = [
        RootSummary(id=n.id, name=n.name, type=n.type, children_count=len(graph.get_children(n.id)))
        for n in graph.sorted_root_nodes()
    ]
    logger.info(
        "Imported legacy library for user %s: %s folders, %s tracks, %s skipped",
        user_id,
        result.folders_created,
        result.tracks_created,
        result.skipped,
    )
    return result


async def load_legacy_records(db: AsyncSession, user_id: str) -> tuple[list[LegacyFolderRecord], list[LegacyTrackRecord]]:
    folders_result = await db.execute(
        select(LegacyFolder).where(LegacyFolder.user_id == user_id).order_by(LegacyFolder.created, LegacyFolder.id)
    )
    tracks_result = await db.execute(
        select(LegacyTrack).where(LegacyTrack.user_id == user_id).order_by(LegacyTrack.created, LegacyTrack.id)
    )
    folders = [LegacyFolderRecord.model_validate(f) for f in folders_result.scalars().all()]
    tracks = [LegacyTrackRecord.model_validate(t) for t in tracks_result.scalars().all()]
    return folders, tracks


async def migrate_legacy_to_graph(db: AsyncSession, user_id: str) -> MigrationResult:
    folders, tracks = await load_legacy_records(db, user_id)
    logger.info("Migrating user %s: %s legacy folders, %s legacy tracks", user_id, len(folders), len(tracks))
    return await import_legacy_library(db, user_id, folders, tracks)


async def get_migration_status(db: AsyncSession, user_id: str) -> MigrationStatus:
    legacy_folders = await db.scalar(select(func.count()).select_from(LegacyFolder).where(LegacyFolder.user_id == user_id))
    legacy_tracks = await db.scalar(select(func.count()).select_from(LegacyTrack).where(LegacyTrack.user_id == user_id))
    graph_nodes = await db.scalar(select(func.count()).select_from(Node).where(Node.user_id == user_id))
    legacy_total = (legacy_folders or 0) + (legacy_tracks or 0)
    return MigrationStatus(
        legacy_folders=legacy_folders or 0,
        legacy_tracks=legacy_tracks or 0,
        graph_nodes=graph_nodes or 0,
        migrated=legacy_total == 0 or (graph_nodes or 0) > 0,
    )


async def migrate_pending_users() -> int:
    """One-time: migrate every user who has legacy rows but no graph nodes. Returns users migrated."""
    migrated = 0
    async with async_session_maker() as session:
        legacy_users = set((await session.execute(select(distinct(LegacyFolder.user_id)))).scalars().all())
        legacy_users |= set((await session.execute(select(distinct(LegacyTrack.user_id)))).scalars().all())
        graph_users = set((await session.execute(select(distinct(Node.user_id)))).scalars().all())
        for user_id in sorted(legacy_users - graph_users):
            result = await migrate_legacy_to_graph(session, user_id)
            if result.nodes_created:
                migrated += 1
    if migrated:
        logger.info("Migrated %s users from legacy tables to the graph", migrated)
    return migrated
