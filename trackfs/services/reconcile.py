"""Detect and repair drift between a user's local snapshot and the store of record.

The remote table is the store of record. A cached node whose id was confirmed
remote at the last sync but is now missing remotely was deleted elsewhere; a
cached node never confirmed remote was created locally and is pushed.
Same-id conflicts resolve to the newer ``modified`` timestamp.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.models import Node
from trackfs.schemas.node import FileSystemNode, utc_now_iso
from trackfs.schemas.sync import LocalSnapshot, SyncPlan, SyncReport
from trackfs.services import local_cache
from trackfs.services.graph import FileSystemGraph
from trackfs.services.nodes_tree import get_user_nodes, node_to_row

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_SYNCED_FIELDS = ("name", "parent_id", "code", "is_multitrack", "steps", "active_step", "modified")


def parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def dedupe_records(records: Iterable[FileSystemNode]) -> tuple[list[FileSystemNode], list[str]]:
    """Keep the first record for each id; return (unique records, duplicated ids)."""
    seen: set[str] = set()
    unique: list[FileSystemNode] = []
    duplicates: list[str] = []
    for record in records:
        if record.id in seen:
            if record.id not in duplicates:
                duplicates.append(record.id)
            continue
        seen.add(record.id)
        unique.append(record)
    return unique, duplicates


def find_orphans(graph: FileSystemGraph) -> list[FileSystemNode]:
    return [n for n in graph.get_all_nodes() if n.parent_id and n.parent_id not in graph]


def repair_orphans(graph: FileSystemGraph) -> list[str]:
    """Move every node with a dangling parent to the root."""
    repaired = []
    for node in find_orphans(graph):
        if graph.move_node(node.id, None):
            repaired.append(node.id)
    return repaired


def _same_content(a: FileSystemNode, b: FileSystemNode) -> bool:
    return a.model_dump(include=set(_SYNCED_FIELDS)) == b.model_dump(include=set(_SYNCED_FIELDS))


def diff_snapshots(
    local: Sequence[FileSystemNode],
    remote: Sequence[FileSystemNode],
    synced_ids: Iterable[str] = (),
    synced_at: str | None = None,
) -> SyncPlan:
    synced = set(synced_ids)
    last_sync = parse_timestamp(synced_at)
    local_by_id = {n.id: n for n in local}
    remote_by_id = {n.id: n for n in remote}
    plan = SyncPlan()

    for node in remote:
        cached = local_by_id.get(node.id)
        if cached is None:
            # Deleted locally since the last sync, unless edited remotely after it
            if node.id in synced and parse_timestamp(node.modified) <= last_sync:
                plan.push_delete.append(node.id)
            else:
                plan.pull.append(node)
        elif _same_content(cached, node):
            plan.unchanged += 1
        elif parse_timestamp(cached.modified) > parse_timestamp(node.modified):
            plan.push_update.append(cached)
        else:
            plan.pull.append(node)

    local_graph = FileSystemGraph(local)
    created = []
    for node in local:
        if node.id in remote_by_id:
            continue
        if node.id in synced:
            plan.drop.append(node.id)
        else:
            created.append(node)
    plan.push_create = sorted(created, key=lambda n: local_graph.get_depth(n.id))
    return plan


async def _apply_plan(
    db: AsyncSession, user_id: str, remote: list[FileSystemNode], plan: SyncPlan, report: SyncReport
) -> tuple[list[str], list[str]]:
    """Push creates, then updates, then deletes. Returns (pushed ids, deleted ids).

    An update may target a folder created in the same sync. A node moved out of
    a deleted folder is not removed with it.
    """
    remote_graph = FileSystemGraph(n.model_copy() for n in remote)
    deleting = set(plan.push_delete)
    rows: dict[str, Node] = {}
    pushed: list[str] = []

    for node in plan.push_create:
        node = node.model_copy(update={"user_id": user_id})
        if node.parent_id and (node.parent_id not in remote_graph or node.parent_id in deleting):
            node.parent_id = None
            report.repaired_orphans.append(node.id)
        remote_graph.add_node(node)
        rows[node.id] = node_to_row(node)
        db.add(rows[node.id])
        pushed.append(node.id)
    if plan.push_create:
        # parents must exist before updates point at them
        await db.flush()

    for node in plan.push_update:
        result = await db.execute(select(Node).where(Node.id == node.id, Node.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            report.errors.append(f"Skipped update of {node.id}: no longer in the store")
            continue
        parent_id = node.parent_id
        if parent_id != row.parent_id:
            if parent_id and (parent_id not in remote_graph or parent_id in deleting):
                report.errors.append(f"Kept remote parent of {node.id}: folder {parent_id} is missing or deleted")
                parent_id = row.parent_id
            elif not remote_graph.move_node(node.id, parent_id):
                report.errors.append(f"Skipped move of {node.id}: would create a cycle")
                parent_id = row.parent_id
        row.name = node.name
        row.parent_id = parent_id
        row.code = node.code
        row.is_multitrack = node.is_multitrack
        row.steps = [s.model_dump() for s in node.steps] if node.steps is not None else None
        row.active_step = node.active_step
        row.modified = node.modified
        rows[node.id] = row
        pushed.append(node.id)

    removal = _deleted_subtrees(remote_graph, plan.push_delete)
    # nodes pushed or pulled in this sync outlive a deleted ancestor, at the root
    kept = set(pushed) | {n.id for n in plan.pull}
    rerooted: list[str] = []
    for node_id in sorted(kept & removal, key=remote_graph.get_depth):
        if node_id in removal:
            remote_graph.move_node(node_id, None)
            rerooted.append(node_id)
            removal = _deleted_subtrees(remote_graph, plan.push_delete)
    for node_id in rerooted:
        if node_id in rows:
            rows[node_id].parent_id = None
    pulled_rerooted = [i for i in rerooted if i not in rows]
    if pulled_rerooted:
        await db.execute(
            update(Node).where(Node.user_id == user_id, Node.id.in_(pulled_rerooted)).values(parent_id=None)
        )
    report.repaired_orphans.extend(rerooted)
    if removal:
        await db.execute(delete(Node).where(Node.user_id == user_id, Node.id.in_(removal)))

    await db.commit()
    return pushed, sorted(removal)


def _deleted_subtrees(graph: FileSystemGraph, node_ids: Iterable[str]) -> set[str]:
    removal: set[str] = set()
    for node_id in node_ids:
        if node_id in graph:
            removal |= graph.get_descendant_ids(node_id) | {node_id}
    return removal


async def _push(db: AsyncSession, user_id: str, remote: list[FileSystemNode], plan: SyncPlan, report: SyncReport) -> bool:
    try:
        pushed, deleted = await _apply_plan(db, user_id, remote, plan, report)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Sync push failed for user %s: %s", user_id, e)
        report.errors.append(f"Push failed: {e}")
        report.repaired_orphans.clear()
        return False
    report.deleted_remote = deleted
    report.pushed = pushed
    return True


async def sync_local_cache(db: AsyncSession, user_id: str) -> SyncReport:
    snapshot = local_cache.read_snapshot(user_id)
    local, duplicate_ids = dedupe_records(snapshot.nodes)
    remote = await get_user_nodes(db, user_id)
    plan = diff_snapshots(local, remote, snapshot.synced_ids, snapshot.synced_at)
    report = SyncReport(
        duplicate_ids=duplicate_ids,
        pulled=[n.id for n in plan.pull],
        dropped=list(plan.drop),
    )

    pushed = True
    if plan.push_create or plan.push_update or plan.push_delete:
        pushed = await _push(db, user_id, remote, plan, report)

    final = await get_user_nodes(db, user_id)
    confirmed = [n.id for n in final]
    if not pushed:
        # Keep unpushed local edits cached so the next sync retries them
        pending = {n.id: n for n in plan.push_create + plan.push_update}
        final = [pending.pop(n.id, n) for n in final if n.id not in plan.push_delete]
        final += list(pending.values())

    graph = FileSystemGraph(final)
    report.validation = graph.validate_hierarchy()
    local_cache.write_snapshot(
        LocalSnapshot(user_id=user_id, nodes=final, synced_ids=confirmed, synced_at=utc_now_iso())
    )
    logger.info(
        "Synced local cache for user %s: pulled=%d pushed=%d dropped=%d",
        user_id,
        len(report.pulled),
        len(report.pushed),
        len(report.dropped),
    )
    return report
