import pytest


async def _create(client, headers, **body):
    response = await client.post("/filesystem/nodes", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_requires_token(client):
    response = await client.get("/filesystem/nodes")
    assert response.status_code in (401, 403)

    response = await client.get("/filesystem/nodes", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid or expired token"}


@pytest.mark.asyncio
async def test_create_list_and_tree(client, auth_headers):
    folder = await _create(client, auth_headers, name="Beats", type="folder")
    await _create(client, auth_headers, name="Kick", type="track", parent_id=folder["id"], code="s('bd')")
    await _create(client, auth_headers, name="Amb", type="track")

    response = await client.get("/filesystem/nodes", headers=auth_headers)
    assert response.status_code == 200
    assert {n["name"] for n in response.json()} == {"Beats", "Kick", "Amb"}

    response = await client.get("/filesystem/tree", headers=auth_headers)
    body = response.json()
    assert [r["name"] for r in body["roots"]] == ["Beats", "Amb"]
    assert body["roots"][0]["children"][0]["full_path"] == "Beats/Kick"
    assert body["stats"]["total_nodes"] == 3
    assert body["stats"]["max_depth"] == 1
    assert body["validation"]["is_valid"] is True


@pytest.mark.asyncio
async def test_users_are_isolated(client, auth_headers, other_auth_headers):
    await _create(client, auth_headers, name="Mine", type="folder")
    response = await client.get("/filesystem/nodes", headers=other_auth_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_error_mapping(client, auth_headers):
    folder = await _create(client, auth_headers, name="Beats", type="folder")
    child = await _create(client, auth_headers, name="Sub", type="folder", parent_id=folder["id"])
    await _create(client, auth_headers, name="Kick", type="track", parent_id=folder["id"])

    response = await client.post(
        "/filesystem/nodes", json={"name": "KICK", "type": "track", "parent_id": folder["id"]}, headers=auth_headers
    )
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]

    response = await client.post(
        "/filesystem/nodes", json={"name": "x", "type": "track", "parent_id": "missing"}, headers=auth_headers
    )
    assert response.status_code == 400

    response = await client.post(
        f"/filesystem/nodes/{folder['id']}/move", json={"new_parent_id": child["id"]}, headers=auth_headers
    )
    assert response.status_code == 400

    response = await client.patch("/filesystem/nodes/missing", json={"name": "x"}, headers=auth_headers)
    assert response.status_code == 404

    response = await client.post("/filesystem/nodes", json={"name": "", "type": "folder"}, headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_move_and_delete(client, auth_headers):
    drums = await _create(client, auth_headers, name="Drums", type="folder")
    track = await _create(client, auth_headers, name="Boom", type="track")

    response = await client.patch(f"/filesystem/nodes/{track['id']}", json={"code": "new"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["code"] == "new"

    response = await client.post(
        f"/filesystem/nodes/{track['id']}/move", json={"new_parent_id": drums["id"]}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["parent_id"] == drums["id"]

    response = await client.delete(f"/filesystem/nodes/{drums['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert sorted(response.json()) == sorted([drums["id"], track["id"]])

    response = await client.get("/filesystem/nodes", headers=auth_headers)
    assert response.json() == []

    response = await client.delete(f"/filesystem/nodes/{drums['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_validate_stats_and_search(client, auth_headers):
    folder = await _create(client, auth_headers, name="Loops", type="folder")
    await _create(client, auth_headers, name="Loops", type="folder")
    await _create(client, auth_headers, name="Loop one", type="track", parent_id=folder["id"], is_multitrack=True)

    response = await client.get("/filesystem/validate", headers=auth_headers)
    assert response.json()["warnings"] == ['Duplicate names in folder "root": Loops']

    response = await client.get("/filesystem/stats", headers=auth_headers)
    stats = response.json()
    assert (stats["folders"], stats["tracks"], stats["multitracks"], stats["root_nodes"]) == (2, 1, 1, 2)

    response = await client.get("/filesystem/search", params={"q": "loop"}, headers=auth_headers)
    assert len(response.json()) == 3
    response = await client.get("/filesystem/search", params={"q": "loop", "type": "track"}, headers=auth_headers)
    assert [n["name"] for n in response.json()] == ["Loop one"]


@pytest.mark.asyncio
async def test_deep_links(client, auth_headers):
    drums = await _create(client, auth_headers, name="Drums", type="folder")
    kicks = await _create(client, auth_headers, name="Kicks", type="folder", parent_id=drums["id"])
    track = await _create(
        client,
        auth_headers,
        name="Big Boom!",
        type="track",
        parent_id=kicks["id"],
        is_multitrack=True,
        steps=[{"name": "Intro"}, {"name": "Main Drop"}],
    )

    response = await client.get(f"/filesystem/nodes/{track['id']}/url", headers=auth_headers)
    assert response.json() == {"id": track["id"], "url": "/repl/drums/kicks/big-boom"}

    response = await client.get(f"/filesystem/nodes/{drums['id']}/url", headers=auth_headers)
    assert response.status_code == 400

    response = await client.get(
        "/filesystem/resolve", params={"url": "/repl/drums/kicks/big-boom?step=main-drop"}, headers=auth_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["node"]["id"] == track["id"]
    assert body["folder_path"] == "drums/kicks"
    assert body["track_slug"] == "big-boom"
    assert body["step_index"] == 1

    response = await client.get("/filesystem/resolve", params={"url": "/repl/nope"}, headers=auth_headers)
    assert response.status_code == 404
    response = await client.get("/filesystem/resolve", params={"url": "/elsewhere"}, headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_blank_names_are_bad_requests(client, auth_headers):
    for node_type in ("track", "folder"):
        response = await client.post("/filesystem/nodes", json={"name": "   ", "type": node_type}, headers=auth_headers)
        assert response.status_code == 400
        assert "cannot be empty" in response.json()["detail"]
