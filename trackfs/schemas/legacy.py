from typing import Any

from pydantic import BaseModel, Field

from trackfs.schemas.node import ValidationResult, utc_now_iso


class LegacyFolderRecord(BaseModel):
    """Row of the legacy ``folders`` table.

    ``path`` is the slash-joined chain of ancestor names. ``parent`` is the
    parent folder's path; older rows may hold the parent's id instead.
    """

    id: str | None = None
    name: str
    path: str
    parent: str | None = None
    created: str = Field(default_factory=utc_now_iso)

    model_config = {"from_attributes": True}


class LegacyTrackRecord(BaseModel):
    id: str | None = None
    name: str
    code: str = ""
    created: str = Field(default_factory=utc_now_iso)
    modified: str = Field(default_factory=utc_now_iso)
    folder: str | None = None
    is_multitrack: bool | None = False
    steps: list[dict[str, Any]] | None = None
    active_step: int | None = 0

    model_config = {"from_attributes": True}


class BatchImportRequest(BaseModel):
    folders: list[LegacyFolderRecord] = []
    tracks: list[LegacyTrackRecord] = []


class RootSummary(BaseModel):
    id: str
    name: str
    type: str
    children_count: int


class MigrationResult(BaseModel):
    nodes_created: int = 0
    folders_created: int = 0
    tracks_created: int = 0
    skipped: int = 0
    errors: list[str] = []
    warnings: list[str] = []
    validation: ValidationResult | None = None
    roots: list[RootSummary] = []

    @property
    def success(self) -> bool:
        return not self.errors


class MigrationStatus(BaseModel):
    legacy_folders: int
    legacy_tracks: int
    graph_nodes: int
    migrated: bool
