import logging
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from formadmin.config import settings
from formadmin.errors import ValidationFailed

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(settings.MONGO_URI, serverSelectionTimeoutMS=5000, connectTimeoutMS=10000)
forms_db = client[settings.DB_NAME]
registry_db = client[settings.REGISTRY_DB_NAME]


def get_forms_db() -> AsyncIOMotorDatabase:
    return forms_db


def get_registry_db() -> AsyncIOMotorDatabase:
    return registry_db


def convert_objectid_to_str(doc: dict) -> dict:
    """Convert MongoDB ObjectId fields to strings for JSON serialization."""
    if doc is None:
        return doc

    if isinstance(doc, dict):
        result = {}
        for key, value in doc.items():
            if isinstance(value, ObjectId):
                result[key] = str(value)
            elif isinstance(value, dict):
                result[key] = convert_objectid_to_str(value)
            elif isinstance(value, list):
                result[key] = [convert_objectid_to_str(item) if isinstance(item, dict) else (str(item) if isinstance(item, ObjectId) else item) for item in value]
            else:
                result[key] = value
        return result
    return doc


def to_object_id(value: Any, field: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationFailed(f"Invalid {field}: {value!r}")
    return ObjectId(value)


def optional_object_id(value: Optional[str], field: str) -> Optional[ObjectId]:
    if value is None or value == "":
        return None
    return to_object_id(value, field)


async def ensure_form_indexes(db: AsyncIOMotorDatabase) -> None:
    definitions = db["form_definitions"]
    await definitions.create_index([("formId", ASCENDING)], unique=True)
    await definitions.create_index([("formId", ASCENDING), ("version", DESCENDING)])
    await definitions.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    await definitions.create_index([("createdBy", ASCENDING), ("createdAt", DESCENDING)])

    instances = db["form_instances"]
    await instances.create_index([("instanceId", ASCENDING)], unique=True)
    await instances.create_index([("formId", ASCENDING), ("createdAt", DESCENDING)])
    await instances.create_index([("submittedBy", ASCENDING), ("createdAt", DESCENDING)])
    await instances.create_index([("status", ASCENDING), ("submittedAt", DESCENDING)])
    await instances.create_index([("formId", ASCENDING), ("status", ASCENDING)])
    logger.info("Form indexes ensured")


async def ensure_registry_indexes(db: AsyncIOMotorDatabase) -> None:
    for key in ("name", "status", "group_id", "created_by"):
        await db["apps"].create_index([(key, ASCENDING)])

    await db["app_users"].create_index([("app_id", ASCENDING)])
    await db["app_users"].create_index([("user_id", ASCENDING)])
    await db["app_users"].create_index([("app_id", ASCENDING), ("user_id", ASCENDING)], unique=True)

    await db["app_groups"].create_index([("name", ASCENDING)])
    await db["app_groups"].create_index([("created_by", ASCENDING)])

    await db["app_versions"].create_index([("app_id", ASCENDING)])
    await db["app_versions"].create_index([("app_id", ASCENDING), ("version", ASCENDING)], unique=True)
    logger.info("Registry indexes ensured")
