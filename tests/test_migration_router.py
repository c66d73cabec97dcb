import pytest

from trackfs.models import LegacyFolder, LegacyTrack
from trackfs.schemas.node import FileSystemNode
from trackfs.schemas.sync import LocalSnapshot
from trackfs.services import local_cache

LIBRARY = {
    "folders": [
        {"id": "V1StGXR8_Z5jdHi6B-myT", "name": "Drums", "path": "Drums", "parent": None},
        {"id": "Uakgb_J5m9g-0JDMbcJqL", "name": "Kicks", "path": "Drums/Kicks", "parent": "V1StGXR8_Z5jdHi6B-myT"},
    ],
    "tracks": [
        {"name": "Boom", "code": "s('bd')", "folder": "Drums/Kicks"},
        {"name": "Solo", "folder": None, "steps": [{"name": "A"}]},
    ],
}


@pytest.mark.asyncio
async def test_batch_import(client, auth_headers):
    response = await client.post("/migration/batch-import", json=LIBRARY, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["nodes_created"] == 4
    assert body["errors"] == []
    assert body["validation"]["is_valid"] is True
    assert [r["name"] for r in body["roots"]] == ["Drums", "Solo"]

    response = await client.post("/migration/batch-import", json=LIBRARY, headers=auth_headers)
    assert response.json()["nodes_created"] == 0
    assert response.json()["skipped"] == 4

    response = await client.get("/filesystem/tree", headers=auth_headers)
    kicks = response.json()["roots"][0]["children"][0]
    assert kicks["children"][0]["full_path"] == "Drums/Kicks/Boom"


@pytest.mark.asyncio
async def test_status_and_migrate_to_graph(client, auth_headers, db):
    db.add_all([
        LegacyFolder(id="f1", user_id="user-1", name="Drums", path="Drums", created="2026-01-01T00:00:00+00:00"),
        LegacyTrack(
            id="t1",
            user_id="user-1",
            name="Boom",
            created="2026-01-01T00:00:00+00:00",
            modified="2026-01-01T00:00:00+00:00",
            folder="Drums",
        ),
    ])
    await db.commit()

    response = await client.get("/migration/status", headers=auth_headers)
    assert response.json() == {"legacy_folders": 1, "legacy_tracks": 1, "graph_nodes": 0, "migrated": False}

    response = await client.post("/migration/migrate-to-graph", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["nodes_created"] == 2

    response = await client.get("/migration/status", headers=auth_headers)
    assert response.json()["migrated"] is True


@pytest.mark.asyncio
async def test_sync(client, auth_headers):
    local_cache.write_snapshot(LocalSnapshot(
        user_id="user-1",
        nodes=[FileSystemNode(id="local-folder", name="Offline", type="folder")],
    ))

    response = await client.post("/migration/sync", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["pushed"] == ["local-folder"]

    response = await client.get("/filesystem/nodes", headers=auth_headers)
    assert [n["name"] for n in response.json()] == ["Offline"]
    assert local_cache.read_snapshot("user-1").synced_ids == ["local-folder"]
