import secrets
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

NodeType = Literal["folder", "track"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_node_id() -> str:
    """22-char URL-safe id, same alphabet and length class as legacy folder ids."""
    return secrets.token_urlsafe(16)


class TrackStep(BaseModel):
    id: str = Field(default_factory=new_node_id)
    name: str
    code: str = ""
    created: str = Field(default_factory=utc_now_iso)
    modified: str = Field(default_factory=utc_now_iso)


class FileSystemNode(BaseModel):
    """A folder or track in a user's file system graph.

    ``parent_id`` is the only source of structure; paths and depths are derived
    by the graph. Instances are shared with the graph and mutated in place.
    """

    id: str
    name: str
    type: NodeType
    parent_id: str | None = None
    user_id: str | None = None
    created: str = Field(default_factory=utc_now_iso)
    modified: str = Field(default_factory=utc_now_iso)

    code: str | None = None
    is_multitrack: bool = False
    steps: list[TrackStep] | None = None
    active_step: int = 0

    model_config = {"from_attributes": True}


class TreeNode(BaseModel):
    id: str
    name: str
    type: NodeType
    data: FileSystemNode
    children: list["TreeNode"] = []
    full_path: str
    depth: int


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = []
    warnings: list[str] = []


class GraphStats(BaseModel):
    total_nodes: int = 0
    folders: int = 0
    tracks: int = 0
    multitracks: int = 0
    max_depth: int = 0
    root_nodes: int = 0


class NodeCreate(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1, max_length=255)
    type: NodeType
    parent_id: str | None = None
    code: str | None = None
    is_multitrack: bool = False
    steps: list[TrackStep] | None = None
    active_step: int = 0


class NodeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = None
    is_multitrack: bool | None = None
    steps: list[TrackStep] | None = None
    active_step: int | None = None


class MoveRequest(BaseModel):
    new_parent_id: str | None = None


class FileSystemTreeResponse(BaseModel):
    roots: list[TreeNode] = []
    stats: GraphStats
    validation: ValidationResult


class NodeUrlResponse(BaseModel):
    id: str
    url: str


class ResolvedTrack(BaseModel):
    node: FileSystemNode
    folder_path: str | None
    track_slug: str
    step_index: int | None = None


TreeNode.model_rebuild()
