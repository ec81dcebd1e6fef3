import copy
import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from formadmin.database import ensure_form_indexes, ensure_registry_indexes, get_forms_db, get_registry_db
from formadmin.main import app as forms_app
from formadmin.registry_main import app as registry_app


HOSPITAL_SCHEMA = {
    "type": "object",
    "properties": {
        "basicInfo": {
            "type": "void",
            "x-component": "FormGrid",
            "x-component-props": {"minColumns": 2, "maxColumns": 2},
            "properties": {
                "userType": {
                    "type": "string",
                    "title": "User type",
                    "x-decorator": "FormItem",
                    "x-component": "Radio.Group",
                    "enum": [
                        {"label": "Personal", "value": "personal"},
                        {"label": "Enterprise", "value": "enterprise"},
                    ],
                    "default": "personal",
                },
                "name": {
                    "type": "string",
                    "title": "Name",
                    "required": True,
                    "x-decorator": "FormItem",
                    "x-component": "Input",
                    "x-reactions": {
                        "dependencies": ["userType"],
                        "fulfill": {
                            "state": {"title": '{{$deps[0] === "enterprise" ? "Company name" : "Full name"}}'},
                        },
                    },
                },
                "idCard": {
                    "type": "string",
                    "title": "ID card",
                    "required": True,
                    "x-decorator": "FormItem",
                    "x-component": "Input",
                    "x-reactions": {
                        "dependencies": ["userType"],
                        "fulfill": {"state": {"visible": '{{$deps[0] === "personal"}}'}},
                    },
                },
                "businessLicense": {
                    "type": "string",
                    "title": "Business license",
                    "required": True,
                    "x-decorator": "FormItem",
                    "x-component": "Input",
                    "x-reactions": {
                        "dependencies": ["userType"],
                        "fulfill": {"state": {"visible": '{{$deps[0] === "enterprise"}}'}},
                    },
                },
            },
        },
        "email": {
            "type": "string",
            "title": "Email",
            "x-decorator": "FormItem",
            "x-component": "Input",
            "x-validator": [{"format": "email", "message": "Email format is invalid"}],
        },
        "password": {
            "type": "string",
            "title": "Password",
            "x-decorator": "FormItem",
            "x-component": "Password",
            "x-validator": [{"min": 6, "message": "Password needs at least 6 characters"}],
        },
    },
}


def make_definition(form_id="test-form", **overrides):
    payload = {
        "formId": form_id,
        "name": "Test Form",
        "description": "A test form",
        "schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "title": "Name", "required": True,
                         "x-decorator": "FormItem", "x-component": "Input"},
                "email": {"type": "string", "title": "Email",
                          "x-decorator": "FormItem", "x-component": "Input"},
            },
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def forms_db():
    db = AsyncMongoMockClient()[f"forms_{uuid.uuid4().hex}"]
    await ensure_form_indexes(db)
    return db


@pytest.fixture
async def registry_db():
    db = AsyncMongoMockClient()[f"registry_{uuid.uuid4().hex}"]
    await ensure_registry_indexes(db)
    return db


@pytest.fixture
async def forms_client(forms_db):
    forms_app.dependency_overrides[get_forms_db] = lambda: forms_db
    async with AsyncClient(transport=ASGITransport(app=forms_app), base_url="http://test") as client:
        yield client
    forms_app.dependency_overrides.clear()


@pytest.fixture
async def registry_client(registry_db):
    registry_app.dependency_overrides[get_registry_db] = lambda: registry_db
    async with AsyncClient(transport=ASGITransport(app=registry_app), base_url="http://test") as client:
        yield client
    registry_app.dependency_overrides.clear()


@pytest.fixture
def hospital_schema():
    return copy.deepcopy(HOSPITAL_SCHEMA)


@pytest.fixture
def definition_payload():
    return make_definition
