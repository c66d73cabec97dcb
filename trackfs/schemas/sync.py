from pydantic import BaseModel

from trackfs.schemas.node import FileSystemNode, ValidationResult


class LocalSnapshot(BaseModel):
    """Locally cached copy of a user's nodes.

    ``synced_ids`` are the ids confirmed present remotely at the last sync;
    a cached node outside that set was created locally and never pushed.
    """

    user_id: str
    nodes: list[FileSystemNode] = []
    synced_ids: list[str] = []
    synced_at: str | None = None


class SyncPlan(BaseModel):
    pull: list[FileSystemNode] = []
    push_create: list[FileSystemNode] = []
    push_update: list[FileSystemNode] = []
    push_delete: list[str] = []
    drop: list[str] = []
    unchanged: int = 0


class SyncReport(BaseModel):
    pulled: list[str] = []
    pushed: list[str] = []
    deleted_remote: list[str] = []
    dropped: list[str] = []
    duplicate_ids: list[str] = []
    repaired_orphans: list[str] = []
    errors: list[str] = []
    validation: ValidationResult | None = None
