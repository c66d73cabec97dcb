from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.database import get_db
from trackfs.dependencies import get_current_user_id
from trackfs.schemas.legacy import BatchImportRequest, MigrationResult, MigrationStatus
from trackfs.schemas.sync import SyncReport
from trackfs.services import graph_migrate, reconcile

router = APIRouter(prefix="/migration", tags=["migration"])


@router.get("/status", response_model=MigrationStatus)
async def migration_status(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MigrationStatus:
    return await graph_migrate.get_migration_status(db, user_id)


@router.post("/migrate-to-graph", response_model=MigrationResult)
async def migrate_to_graph(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MigrationResult:
    """Copy the user's legacy folders and tracks into the graph table."""
    return await graph_migrate.migrate_legacy_to_graph(db, user_id)


@router.post("/batch-import", response_model=MigrationResult)
async def batch_import(
    body: BatchImportRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MigrationResult:
    return await graph_migrate.import_legacy_library(db, user_id, body.folders, body.tracks)


@router.post("/sync", response_model=SyncReport)
async def sync(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> SyncReport:
    return await reconcile.sync_local_cache(db, user_id)
