import pytest

from trackfs.models import LegacyFolder, LegacyTrack
from trackfs.schemas.legacy import LegacyFolderRecord, LegacyTrackRecord
from trackfs.services import graph_migrate
from trackfs.services.graph import FileSystemGraph
from trackfs.services.graph_migrate import (
    get_migration_status,
    import_legacy_library,
    migrate_legacy_to_graph,
    normalize_legacy_parents,
    plan_legacy_import,
)
from trackfs.services.nodes_tree import get_user_nodes, load_user_graph

USER = "user-1"
DRUMS_ID = "V1StGXR8_Z5jdHi6B-myT"
KICKS_ID = "Uakgb_J5m9g-0JDMbcJqL"


def _folders() -> list[LegacyFolderRecord]:
    # child listed before its parent, parent given by path
    return [
        LegacyFolderRecord(id=KICKS_ID, name="Kicks", path="Drums/Kicks", parent="Drums"),
        LegacyFolderRecord(id=DRUMS_ID, name="Drums", path="Drums"),
    ]


def _tracks() -> list[LegacyTrackRecord]:
    return [
        LegacyTrackRecord(id="t1", name="Boom", code="s('bd')", folder="Drums/Kicks"),
        LegacyTrackRecord(id="t2", name="Legacy", folder=KICKS_ID),
        LegacyTrackRecord(
            id="t3",
            name="Song",
            folder=None,
            is_multitrack=True,
            steps=[{"name": "Intro", "code": "a"}, {"code": "b"}],
            active_step=1,
        ),
    ]


def _graph(plan) -> FileSystemGraph:
    return FileSystemGraph(plan.folders + plan.tracks)


def test_normalize_converts_id_parents_to_paths():
    folders = normalize_legacy_parents([
        LegacyFolderRecord(id=DRUMS_ID, name="Drums", path="Drums"),
        LegacyFolderRecord(id=KICKS_ID, name="Kicks", path="Drums/Kicks", parent=DRUMS_ID),
        LegacyFolderRecord(name="Top", path="Top", parent=""),
    ])
    assert [f.parent for f in folders] == [None, "Drums", None]


def test_plan_builds_hierarchy_regardless_of_order():
    plan = plan_legacy_import(_folders(), _tracks(), USER)
    graph = _graph(plan)

    assert len(plan.folders) == 2
    assert len(plan.tracks) == 3
    assert plan.warnings == []
    paths = sorted(graph.get_path(n.id) for n in plan.tracks)
    assert paths == ["Drums/Kicks/Boom", "Drums/Kicks/Legacy", "Song"]
    assert graph.validate_hierarchy().is_valid
    assert all(n.user_id == USER for n in graph.get_all_nodes())


def test_plan_converts_track_fields():
    plan = plan_legacy_import(_folders(), _tracks(), USER)
    boom = next(n for n in plan.tracks if n.name == "Boom")
    song = next(n for n in plan.tracks if n.name == "Song")

    assert boom.code == "s('bd')"
    assert boom.steps is None
    assert song.is_multitrack is True
    assert song.active_step == 1
    assert [s.name for s in song.steps] == ["Intro", "Step 2"]
    assert [s.code for s in song.steps] == ["a", "b"]


def test_plan_falls_back_to_path_prefix_and_root():
    folders = [
        LegacyFolderRecord(name="Drums", path="Drums"),
        LegacyFolderRecord(name="Kicks", path="Drums/Kicks", parent="Missing"),
        LegacyFolderRecord(name="Lost", path="Nowhere/Lost"),
    ]
    tracks = [LegacyTrackRecord(name="Stray", folder="Unknown")]
    plan = plan_legacy_import(folders, tracks, USER)
    graph = _graph(plan)

    kicks = next(n for n in plan.folders if n.name == "Kicks")
    lost = next(n for n in plan.folders if n.name == "Lost")
    assert graph.get_path(kicks.id) == "Drums/Kicks"
    assert lost.parent_id is None
    assert plan.tracks[0].parent_id is None
    assert 'Folder "Nowhere/Lost": parent "Nowhere" not found, placed at root' in plan.warnings
    assert 'Track "Stray": folder "Unknown" not found, placed at root' in plan.warnings


def test_plan_skips_existing_nodes():
    first = plan_legacy_import(_folders(), _tracks(), USER)
    again = plan_legacy_import(_folders(), _tracks(), USER, existing=first.folders + first.tracks)
    assert again.folders == []
    assert again.tracks == []
    assert again.skipped == 5


@pytest.mark.asyncio
async def test_import_legacy_library(db):
    result = await import_legacy_library(db, USER, _folders(), _tracks())

    assert result.success
    assert result.folders_created == 2
    assert result.tracks_created == 3
    assert result.nodes_created == 5
    assert result.validation.is_valid
    assert [(r.name, r.type, r.children_count) for r in result.roots] == [("Drums", "folder", 1), ("Song", "track", 0)]

    graph = await load_user_graph(db, USER)
    assert len(graph) == 5


@pytest.mark.asyncio
async def test_import_twice_does_not_duplicate(db):
    await import_legacy_library(db, USER, _folders(), _tracks())
    result = await import_legacy_library(db, USER, _folders(), _tracks())

    assert result.nodes_created == 0
    assert result.skipped == 5
    assert len(await get_user_nodes(db, USER)) == 5


async def _seed_legacy(db):
    db.add_all([
        LegacyFolder(id=DRUMS_ID, user_id=USER, name="Drums", path="Drums", parent=None, created="2026-01-01T00:00:00+00:00"),
        LegacyFolder(id=KICKS_ID, user_id=USER, name="Kicks", path="Drums/Kicks", parent=DRUMS_ID, created="2026-01-02T00:00:00+00:00"),
        LegacyTrack(
            id="t1",
            user_id=USER,
            name="Boom",
            code="x",
            created="2026-01-03T00:00:00+00:00",
            modified="2026-01-03T00:00:00+00:00",
            folder=KICKS_ID,
        ),
    ])
    await db.commit()


@pytest.mark.asyncio
async def test_migrate_legacy_to_graph_and_status(db):
    await _seed_legacy(db)

    status = await get_migration_status(db, USER)
    assert (status.legacy_folders, status.legacy_tracks, status.graph_nodes, status.migrated) == (2, 1, 0, False)

    result = await migrate_legacy_to_graph(db, USER)
    assert result.nodes_created == 3
    graph = await load_user_graph(db, USER)
    boom = graph.find_by_name("Boom")[0]
    assert graph.get_path(boom.id) == "Drums/Kicks/Boom"
    assert boom.created == "2026-01-03T00:00:00+00:00"

    status = await get_migration_status(db, USER)
    assert status.graph_nodes == 3
    assert status.migrated is True


@pytest.mark.asyncio
async def test_status_of_empty_user_is_migrated(db):
    status = await get_migration_status(db, "nobody")
    assert status.migrated is True


@pytest.mark.asyncio
async def test_migrate_pending_users(db, session_maker, monkeypatch):
    await _seed_legacy(db)
    monkeypatch.setattr(graph_migrate, "async_session_maker", session_maker)

    assert await graph_migrate.migrate_pending_users() == 1
    assert len(await get_user_nodes(db, USER)) == 3
    # already migrated users are left alone
    assert await graph_migrate.migrate_pending_users() == 0
