from bson import ObjectId

GROUPS_URL = "/api/v1/app-groups"


async def test_group_crud(registry_client):
    creator = str(ObjectId())
    for name in ("Operations", "Finance"):
        r = await registry_client.post(GROUPS_URL, json={"name": name, "created_by": creator})
        assert r.status_code == 201
        assert r.json()["code"] == 201

    r = await registry_client.get(GROUPS_URL)
    groups = r.json()["data"]
    assert [g["name"] for g in groups] == ["Finance", "Operations"]
    group_id = groups[0]["_id"]

    r = await registry_client.put(f"{GROUPS_URL}/{group_id}", json={"description": "Money things", "updated_by": creator})
    assert r.status_code == 200
    assert r.json()["data"]["description"] == "Money things"
    assert r.json()["data"]["name"] == "Finance"
    assert r.json()["data"]["created_by"] == creator

    r = await registry_client.delete(f"{GROUPS_URL}/{group_id}")
    assert r.json()["message"] == "Group deleted"
    assert [g["name"] for g in (await registry_client.get(GROUPS_URL)).json()["data"]] == ["Operations"]


async def test_unknown_group(registry_client):
    missing = str(ObjectId())
    assert (await registry_client.put(f"{GROUPS_URL}/{missing}", json={"name": "x"})).status_code == 404
    assert (await registry_client.delete(f"{GROUPS_URL}/{missing}")).status_code == 404
    assert (await registry_client.delete(f"{GROUPS_URL}/bad-id")).status_code == 400
