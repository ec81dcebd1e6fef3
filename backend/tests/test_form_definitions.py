BASE_URL = "/form-definitions"


async def test_create_then_get_returns_version_one(forms_client, definition_payload):
    r = await forms_client.post(BASE_URL, json=definition_payload())
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["formId"] == "test-form"
    assert body["data"]["version"] == 1
    assert body["data"]["status"] == "draft"
    assert body["data"]["createdBy"] == "system"

    r = await forms_client.get(f"{BASE_URL}/test-form")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["version"] == 1
    assert data["name"] == "Test Form"
    assert data["description"] == "A test form"
    assert data["schema"]["properties"]["name"]["title"] == "Name"


async def test_create_duplicate_form_id_is_rejected(forms_client, definition_payload):
    assert (await forms_client.post(BASE_URL, json=definition_payload())).status_code == 201

    r = await forms_client.post(BASE_URL, json=definition_payload(name="Again"))
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "already exists" in r.json()["error"]


async def test_create_requires_schema_properties(forms_client, definition_payload):
    r = await forms_client.post(BASE_URL, json=definition_payload(schema={"type": "object"}))
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "properties" in body["error"]


async def test_update_requires_schema_properties(forms_client, definition_payload):
    await forms_client.post(BASE_URL, json=definition_payload())

    r = await forms_client.put(f"{BASE_URL}/test-form", json={"schema": {"foo": 1}})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "properties" in r.json()["error"]

    r = await forms_client.get(f"{BASE_URL}/test-form")
    assert r.json()["data"]["version"] == 1
    assert "foo" not in r.json()["data"]["schema"]


async def test_create_rejects_invalid_validator_pattern(forms_client, forms_db, definition_payload):
    schema = {"type": "object", "properties": {"code": {"type": "string", "x-validator": {"pattern": "["}}}}
    r = await forms_client.post(BASE_URL, json=definition_payload(schema=schema))
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid form schema")
    assert await forms_db["form_definitions"].count_documents({}) == 0


async def test_update_rejects_invalid_validator_pattern(forms_client, definition_payload):
    await forms_client.post(BASE_URL, json=definition_payload())

    schema = {"type": "object", "properties": {"code": {"type": "string", "x-validator": {"pattern": "/(/"}}}}
    r = await forms_client.put(f"{BASE_URL}/test-form", json={"schema": schema})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid form schema")
    assert (await forms_client.get(f"{BASE_URL}/test-form")).json()["data"]["version"] == 1


async def test_create_rejects_broken_reaction_expression(forms_client, definition_payload):
    schema = {
        "type": "object",
        "properties": {
            "a": {"type": "string", "x-reactions": {"dependencies": ["b"],
                                                    "fulfill": {"state": {"visible": "{{$deps[0] ===}}"}}}},
        },
    }
    r = await forms_client.post(BASE_URL, json=definition_payload(schema=schema))
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid form schema")


async def test_schema_change_bumps_version_but_name_change_does_not(forms_client, definition_payload):
    await forms_client.post(BASE_URL, json=definition_payload())

    # ---------- name only: version unchanged ----------
    r = await forms_client.put(f"{BASE_URL}/test-form", json={"name": "Updated Test Form"})
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Updated Test Form"
    assert r.json()["data"]["version"] == 1

    # ---------- same schema again: version unchanged ----------
    same_schema = definition_payload()["schema"]
    r = await forms_client.put(f"{BASE_URL}/test-form", json={"schema": same_schema})
    assert r.json()["data"]["version"] == 1

    # ---------- new schema: version bumped ----------
    new_schema = {"type": "object", "properties": {"age": {"type": "number", "title": "Age"}}}
    r = await forms_client.put(f"{BASE_URL}/test-form", json={"schema": new_schema})
    assert r.status_code == 200
    assert r.json()["data"]["version"] == 2
    assert r.json()["data"]["schema"] == new_schema

    r = await forms_client.get(f"{BASE_URL}/test-form")
    assert r.json()["data"]["version"] == 2


async def test_resending_schema_without_type_keeps_version(forms_client, definition_payload):
    schema = {"properties": {"a": {"type": "string", "title": "A"}}}
    r = await forms_client.post(BASE_URL, json=definition_payload(form_id="no-type", schema=schema))
    assert r.status_code == 201
    assert r.json()["data"]["schema"]["type"] == "object"

    r = await forms_client.put(f"{BASE_URL}/no-type", json={"schema": schema})
    assert r.status_code == 200
    assert r.json()["data"]["version"] == 1

    r = await forms_client.put(f"{BASE_URL}/no-type", json={"schema": {**schema, "type": "object"}})
    assert r.json()["data"]["version"] == 1


async def test_update_unknown_definition_returns_404(forms_client):
    r = await forms_client.put(f"{BASE_URL}/missing", json={"name": "x"})
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Form definition not found"}


async def test_delete_archives_and_hides_definition(forms_client, forms_db, definition_payload):
    await forms_client.post(BASE_URL, json=definition_payload())
    await forms_client.post(BASE_URL, json=definition_payload(form_id="other-form"))

    r = await forms_client.delete(f"{BASE_URL}/test-form")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Form definition deleted successfully"}

    # still stored, just archived
    stored = await forms_db["form_definitions"].find_one({"formId": "test-form"})
    assert stored["status"] == "archived"

    assert (await forms_client.get(f"{BASE_URL}/test-form")).status_code == 404

    listed = (await forms_client.get(BASE_URL)).json()["data"]
    assert [d["formId"] for d in listed["data"]] == ["other-form"]
    assert listed["total"] == 1

    archived = (await forms_client.get(BASE_URL, params={"status": "archived"})).json()["data"]
    assert [d["formId"] for d in archived["data"]] == ["test-form"]

    # a second delete finds nothing left to archive
    assert (await forms_client.delete(f"{BASE_URL}/test-form")).status_code == 404


async def test_list_is_paginated(forms_client, definition_payload):
    for i in range(5):
        await forms_client.post(BASE_URL, json=definition_payload(form_id=f"form-{i}"))

    r = await forms_client.get(BASE_URL, params={"page": 2, "pageSize": 2})
    assert r.status_code == 200
    page = r.json()["data"]
    assert page["total"] == 5
    assert page["page"] == 2
    assert page["pageSize"] == 2
    assert page["totalPages"] == 3
    assert len(page["data"]) == 2


async def test_list_rejects_out_of_range_page_size(forms_client):
    r = await forms_client.get(BASE_URL, params={"pageSize": 500})
    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_validate_endpoint_follows_reactions(forms_client, definition_payload, hospital_schema):
    await forms_client.post(BASE_URL, json=definition_payload(form_id="hospital", schema=hospital_schema))

    r = await forms_client.post(f"{BASE_URL}/hospital/validate", json={"values": {
        "userType": "enterprise", "name": "ACME", "businessLicense": "", "idCard": "ignored"}})
    assert r.status_code == 200
    result = r.json()["data"]
    assert result["valid"] is False
    assert [e["path"] for e in result["errors"]] == ["businessLicense"]
    # idCard is hidden for enterprises, so it is not collected
    assert "idCard" not in result["values"]

    r = await forms_client.post(f"{BASE_URL}/hospital/validate", json={"values": {
        "name": "Jane", "idCard": "X123"}})
    result = r.json()["data"]
    assert result["valid"] is True
    assert result["values"] == {"userType": "personal", "name": "Jane", "idCard": "X123"}


async def test_render_endpoint_returns_html(forms_client, definition_payload):
    await forms_client.post(BASE_URL, json=definition_payload())

    r = await forms_client.get(f"{BASE_URL}/test-form/render")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert 'name="name"' in r.text
    assert "<form" in r.text

    assert (await forms_client.get(f"{BASE_URL}/missing/render")).status_code == 404


async def test_unexpected_errors_return_generic_500():
    from httpx import ASGITransport, AsyncClient

    from formadmin.dependencies import get_form_service
    from formadmin.main import app

    class BrokenService:
        async def get_form_definition(self, form_id):
            raise RuntimeError("database exploded")

    app.dependency_overrides[get_form_service] = lambda: BrokenService()
    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get(f"{BASE_URL}/anything")
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Internal server error"}
