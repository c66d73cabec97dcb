"""Create, update, move and delete nodes in the store of record.

Every mutation is validated against a graph built from the user's current
remote state, so checks such as duplicate track names reflect what is stored
at request time rather than what a client last saw.
"""

import logging
from typing import NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.models import Node
from trackfs.schemas.node import FileSystemNode, NodeCreate, NodeUpdate, new_node_id, utc_now_iso
from trackfs.services.graph import FileSystemGraph
from trackfs.services.nodes_tree import load_user_graph, node_to_row, row_to_node
from trackfs.services.track_names import is_track_name_available, validate_track_name

logger = logging.getLogger(__name__)


class NodeStoreError(Exception):
    pass


class NodeNotFoundError(NodeStoreError):
    pass


class NodeConflictError(NodeStoreError):
    pass


class InvalidParentError(NodeStoreError):
    pass


class InvalidMoveError(NodeStoreError):
    pass


class InvalidNameError(NodeStoreError):
    pass


class _SiblingTrack(NamedTuple):
    id: str
    name: str
    folder: str | None


async def _get_row(db: AsyncSession, node_id: str, user_id: str) -> Node | None:
    result = await db.execute(select(Node).where(Node.id == node_id, Node.user_id == user_id))
    return result.scalar_one_or_none()


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Integrity error on commit", extra={"error": str(e.orig)})
        raise NodeConflictError("Conflicting change, reload and retry") from e


def _require_folder_parent(graph: FileSystemGraph, parent_id: str | None) -> None:
    if not parent_id:
        return
    parent = graph.get_node(parent_id)
    if parent is None:
        raise InvalidParentError("Parent node not found")
    if parent.type != "folder":
        raise InvalidParentError("Parent must be a folder")


def _check_folder_name(name: str) -> None:
    if not name.strip():
        raise InvalidNameError("Folder name cannot be empty")


def _check_track_name(
    graph: FileSystemGraph, name: str, parent_id: str | None, exclude_id: str | None = None
) -> None:
    # format rules first, so a blank name is never reported as taken
    error = validate_track_name(name, parent_id, ())
    if error:
        raise InvalidNameError(error)
    tracks = [_SiblingTrack(n.id, n.name, n.parent_id) for n in graph.get_all_nodes() if n.type == "track"]
    if not is_track_name_available(name, parent_id, tracks, exclude_id):
        where = graph.get_path(parent_id) if parent_id else "root folder"
        raise NodeConflictError(f'A track named "{name.strip()}" already exists in {where}')


async def create_node(db: AsyncSession, user_id: str, data: NodeCreate) -> FileSystemNode:
    if data.id is not None and await db.get(Node, data.id) is not None:
        raise NodeConflictError("Node id already exists")

    graph = await load_user_graph(db, user_id)
    _require_folder_parent(graph, data.parent_id)
    if data.type == "track":
        _check_track_name(graph, data.name, data.parent_id)
    else:
        _check_folder_name(data.name)

    now = utc_now_iso()
    node = FileSystemNode(
        id=data.id or new_node_id(),
        name=data.name.strip(),
        type=data.type,
        parent_id=data.parent_id or None,
        user_id=user_id,
        created=now,
        modified=now,
    )
    if data.type == "track":
        node.code = data.code or ""
        node.is_multitrack = data.is_multitrack
        node.steps = data.steps
        node.active_step = data.active_step

    db.add(node_to_row(node))
    await _commit(db)
    logger.info("Node created", extra={"node_id": node.id, "type": node.type})
    return node


async def update_node(db: AsyncSession, user_id: str, node_id: str, data: NodeUpdate) -> FileSystemNode:
    row = await _get_row(db, node_id, user_id)
    if row is None:
        raise NodeNotFoundError("Node not found")

    if data.name is not None:
        if row.type == "track":
            graph = await load_user_graph(db, user_id)
            _check_track_name(graph, data.name, row.parent_id, exclude_id=node_id)
        else:
            _check_folder_name(data.name)
        row.name = data.name.strip()
    if row.type == "track":
        if data.code is not None:
            row.code = data.code
        if data.is_multitrack is not None:
            row.is_multitrack = data.is_multitrack
        if data.steps is not None:
            row.steps = [s.model_dump() for s in data.steps]
        if data.active_step is not None:
            row.active_step = data.active_step
    row.modified = utc_now_iso()
    await _commit(db)
    return row_to_node(row)


async def move_node(db: AsyncSession, user_id: str, node_id: str, new_parent_id: str | None) -> FileSystemNode:
    graph = await load_user_graph(db, user_id)
    node = graph.get_node(node_id)
    if node is None:
        raise NodeNotFoundError("Node not found")
    new_parent_id = new_parent_id or None
    _require_folder_parent(graph, new_parent_id)
    if node.type == "track" and node.parent_id != new_parent_id:
        _check_track_name(graph, node.name, new_parent_id, exclude_id=node_id)
    if not graph.move_node(node_id, new_parent_id):
        raise InvalidMoveError("Cannot move a node into itself or one of its descendants")

    row = await _get_row(db, node_id, user_id)
    if row is None:
        raise NodeNotFoundError("Node not found")
    row.parent_id = new_parent_id
    row.modified = node.modified = utc_now_iso()
    await _commit(db)
    logger.info("Node moved", extra={"node_id": node_id, "parent_id": new_parent_id})
    return node


async def delete_node(db: AsyncSession, user_id: str, node_id: str) -> list[str]:
    """Delete a node and its whole subtree; returns every removed id."""
    graph = await load_user_graph(db, user_id)
    if node_id not in graph:
        raise NodeNotFoundError("Node not found")
    removed = {node_id} | graph.get_descendant_ids(node_id)
    await db.execute(delete(Node).where(Node.user_id == user_id, Node.id.in_(removed)))
    await _commit(db)
    graph.remove_node(node_id)
    logger.info("Node deleted", extra={"node_id": node_id, "removed": len(removed)})
    return sorted(removed)
