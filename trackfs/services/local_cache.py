"""Local node snapshot stored in workspace/{user_id}/nodes.json"""

import logging
from pathlib import Path

from pydantic import ValidationError

from trackfs.config import settings
from trackfs.schemas.node import FileSystemNode
from trackfs.schemas.sync import LocalSnapshot
from trackfs.services.graph import FileSystemGraph

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "nodes.json"


def _ensure_workspace() -> Path:
    root = Path(settings.workspace_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def snapshot_path(user_id: str) -> Path:
    return _ensure_workspace() / user_id / SNAPSHOT_FILE


def read_snapshot(user_id: str) -> LocalSnapshot:
    path = snapshot_path(user_id)
    if not path.exists():
        return LocalSnapshot(user_id=user_id)
    try:
        return LocalSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        # unreadable cache: start over, the next sync rebuilds it from the store
        logger.error("Corrupt local snapshot for user %s: %s", user_id, e)
        return LocalSnapshot(user_id=user_id)


def write_snapshot(snapshot: LocalSnapshot) -> None:
    path = snapshot_path(snapshot.user_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    tmp.replace(path)


def delete_snapshot(user_id: str) -> None:
    path = snapshot_path(user_id)
    if path.exists():
        path.unlink()


def upsert_local_node(user_id: str, node: FileSystemNode) -> None:
    """Record a local edit; the node stays unsynced until the next sync."""
    snapshot = read_snapshot(user_id)
    snapshot.nodes = [n for n in snapshot.nodes if n.id != node.id] + [node]
    write_snapshot(snapshot)


def drop_local_node(user_id: str, node_id: str) -> None:
    """Delete a node and its cached subtree locally; synced ids are kept so the
    next sync can propagate the deletion."""
    snapshot = read_snapshot(user_id)
    graph = FileSystemGraph(snapshot.nodes)
    graph.remove_node(node_id)
    snapshot.nodes = graph.get_all_nodes()
    write_snapshot(snapshot)
