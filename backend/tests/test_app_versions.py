import re

from bson import ObjectId
import pytest


@pytest.fixture
def creator():
    return str(ObjectId())


@pytest.fixture
async def versions_url(registry_client, creator):
    r = await registry_client.post("/api/v1/apps", json={"name": "Inventory", "created_by": creator})
    return f"/api/v1/apps/{r.json()['data']['_id']}/versions"


async def test_create_version_starts_as_draft(registry_client, versions_url, creator):
    r = await registry_client.post(versions_url, json={
        "version": "1.0.0", "description": "First cut", "config": {"theme": "dark"}, "created_by": creator})
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["status"] == "draft"
    assert created["config"] == {"theme": "dark"}
    assert "published_at" not in created

    r = await registry_client.get(f"{versions_url}/1.0.0")
    assert r.json()["data"]["description"] == "First cut"


async def test_duplicate_version_is_rejected(registry_client, versions_url, creator):
    await registry_client.post(versions_url, json={"version": "1.0.0", "created_by": creator})
    r = await registry_client.post(versions_url, json={"version": "1.0.0", "created_by": creator})
    assert r.status_code == 400
    assert r.json()["message"] == "Version already exists"


async def test_list_versions_newest_first(registry_client, versions_url, creator):
    for version in ("1.0.0", "1.1.0"):
        await registry_client.post(versions_url, json={"version": version, "created_by": creator})

    r = await registry_client.get(versions_url)
    assert [v["version"] for v in r.json()["data"]] == ["1.1.0", "1.0.0"]


async def test_versions_of_unknown_app(registry_client, creator):
    url = f"/api/v1/apps/{ObjectId()}/versions"
    assert (await registry_client.get(url)).status_code == 404
    assert (await registry_client.post(url, json={"version": "1", "created_by": creator})).status_code == 404


async def test_update_stores_a_new_draft(registry_client, versions_url, creator):
    await registry_client.post(versions_url, json={"version": "1.0.0", "config": {"a": 1}, "created_by": creator})
    await registry_client.put(f"{versions_url}/1.0.0/publish")

    r = await registry_client.put(f"{versions_url}/1.0.0", json={"config": {"a": 2}})
    assert r.status_code == 200
    clone = r.json()["data"]
    assert re.fullmatch(r"1\.0\.0-updated-\d+", clone["version"])
    assert clone["status"] == "draft"
    assert clone["config"] == {"a": 2}
    assert clone["created_by"] == creator
    assert "published_at" not in clone

    original = (await registry_client.get(f"{versions_url}/1.0.0")).json()["data"]
    assert original["config"] == {"a": 1}
    assert original["status"] == "published"

    assert len((await registry_client.get(versions_url)).json()["data"]) == 2

    r = await registry_client.put(f"{versions_url}/9.9.9", json={"config": {}})
    assert r.status_code == 404


async def test_publish_sets_published_at(registry_client, versions_url, creator):
    await registry_client.post(versions_url, json={"version": "1.0.0", "created_by": creator})

    r = await registry_client.put(f"{versions_url}/1.0.0/publish", json={"updated_by": creator})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "published"
    assert data["published_at"]

    assert (await registry_client.put(f"{versions_url}/2.0.0/publish")).status_code == 404


async def test_unpublish_and_delete_are_not_implemented(registry_client, versions_url):
    r = await registry_client.put(f"{versions_url}/1.0.0/unpublish")
    assert r.status_code == 501
    assert r.json()["success"] is False

    r = await registry_client.delete(f"{versions_url}/1.0.0")
    assert r.status_code == 501
