from trackfs.schemas.auth import TokenData
from trackfs.schemas.legacy import BatchImportRequest, LegacyFolderRecord, LegacyTrackRecord, MigrationResult, MigrationStatus
from trackfs.schemas.node import (
    FileSystemNode,
    FileSystemTreeResponse,
    GraphStats,
    MoveRequest,
    NodeCreate,
    NodeUpdate,
    TrackStep,
    TreeNode,
    ValidationResult,
)
from trackfs.schemas.sync import LocalSnapshot, SyncPlan, SyncReport

__all__ = [
    "TokenData",
    "FileSystemNode",
    "TrackStep",
    "TreeNode",
    "ValidationResult",
    "GraphStats",
    "NodeCreate",
    "NodeUpdate",
    "MoveRequest",
    "FileSystemTreeResponse",
    "LegacyFolderRecord",
    "LegacyTrackRecord",
    "BatchImportRequest",
    "MigrationResult",
    "MigrationStatus",
    "LocalSnapshot",
    "SyncPlan",
    "SyncReport",
]
