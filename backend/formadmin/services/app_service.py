"""
App registry: apps, groups, members and versioned configuration.
"""
import logging
import math
import time
from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from formadmin.database import convert_objectid_to_str, optional_object_id, to_object_id
from formadmin.errors import DuplicateError

logger = logging.getLogger(__name__)

APP_ACTIVE = "active"
APP_ARCHIVED = "archived"
APP_DELETED = "deleted"

# never changed through update calls
PROTECTED_FIELDS = ("_id", "created_at", "created_by")


def _clean_update(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}


class AppService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.apps = db["apps"]
        self.app_users = db["app_users"]
        self.app_groups = db["app_groups"]
        self.app_versions = db["app_versions"]

    # ---------- apps ----------

    async def get_apps(self, query: Dict[str, Any], page: int = 1, limit: int = 20,
                       sort: str = "created_at", order: str = "desc") -> Dict[str, Any]:
        # deleted apps are never listed
        filters: Dict[str, Any] = {"status": {"$ne": APP_DELETED}}
        if query.get("name"):
            filters["name"] = {"$regex": query["name"], "$options": "i"}
        if query.get("group_id"):
            filters["group_id"] = to_object_id(query["group_id"], "group_id")
        if query.get("status") and query["status"] != "all":
            filters["status"] = query["status"]
        if query.get("created_by"):
            filters["created_by"] = to_object_id(query["created_by"], "created_by")

        total = await self.apps.count_documents(filters)
        direction = -1 if order == "desc" else 1
        cursor = self.apps.find(
            filters,
            sort=[(sort, direction), ("_id", direction)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        apps = [convert_objectid_to_str(doc) async for doc in cursor]
        return {
            "data": apps,
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get_app_by_id(self, app_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.apps.find_one({"_id": to_object_id(app_id)})
        return convert_objectid_to_str(doc)

    async def create_app(self, app: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = {
            **app,
            "group_id": optional_object_id(app.get("group_id"), "group_id"),
            "status": APP_ACTIVE,
            "created_at": now,
            "updated_at": now,
            "created_by": to_object_id(app.get("created_by"), "created_by"),
        }
        await self.apps.insert_one(doc)
        logger.info(f"Created app {doc['_id']} ({doc.get('name')})")
        return convert_objectid_to_str(doc)

    async def update_app(self, app_id: str, app: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        object_id = to_object_id(app_id)
        update = {**_clean_update(app), "updated_at": datetime.utcnow()}
        if "group_id" in update:
            update["group_id"] = optional_object_id(update["group_id"], "group_id")
        if update.get("updated_by"):
            update["updated_by"] = to_object_id(update["updated_by"], "updated_by")

        doc = await self.apps.find_one_and_update(
            {"_id": object_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return convert_objectid_to_str(doc)

    async def _set_app_status(self, app_id: str, user_id: str, status: str, **extra) -> Optional[Dict[str, Any]]:
        now = datetime.utcnow()
        doc = await self.apps.find_one_and_update(
            {"_id": to_object_id(app_id)},
            {"$set": {
                "status": status,
                "updated_at": now,
                "updated_by": to_object_id(user_id, "user_id"),
                **extra,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            logger.info(f"App {app_id} -> {status} by {user_id}")
        return convert_objectid_to_str(doc)

    async def delete_app(self, app_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Soft delete."""
        return await self._set_app_status(app_id, user_id, APP_DELETED, deleted_at=datetime.utcnow())

    async def archive_app(self, app_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._set_app_status(app_id, user_id, APP_ARCHIVED)

    async def restore_app(self, app_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._set_app_status(app_id, user_id, APP_ACTIVE, deleted_at=None)

    # ---------- members ----------

    async def get_app_users(self, app_id: str) -> list:
        cursor = self.app_users.find({"app_id": to_object_id(app_id)}, sort=[("created_at", 1)])
        return [convert_objectid_to_str(doc) async for doc in cursor]

    async def add_app_user(self, app_id: str, user_id: str, role: str) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = {
            "app_id": to_object_id(app_id),
            "user_id": to_object_id(user_id, "user_id"),
            "role": role,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.app_users.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("User is already a member of this app")
        return convert_objectid_to_str(doc)

    async def update_app_user_role(self, app_id: str, user_id: str, role: str) -> Optional[Dict[str, Any]]:
        doc = await self.app_users.find_one_and_update(
            {"app_id": to_object_id(app_id), "user_id": to_object_id(user_id, "userId")},
            {"$set": {"role": role, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return convert_objectid_to_str(doc)

    async def remove_app_user(self, app_id: str, user_id: str) -> bool:
        result = await self.app_users.delete_one(
            {"app_id": to_object_id(app_id), "user_id": to_object_id(user_id, "userId")}
        )
        return result.deleted_count > 0

    # ---------- groups ----------

    async def get_app_groups(self) -> list:
        cursor = self.app_groups.find({}, sort=[("name", 1)])
        return [convert_objectid_to_str(doc) async for doc in cursor]

    async def create_app_group(self, group: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = {
            **group,
            "created_at": now,
            "updated_at": now,
            "created_by": to_object_id(group.get("created_by"), "created_by"),
        }
        await self.app_groups.insert_one(doc)
        return convert_objectid_to_str(doc)

    async def update_app_group(self, group_id: str, group: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update = {**_clean_update(group), "updated_at": datetime.utcnow()}
        if update.get("updated_by"):
            update["updated_by"] = to_object_id(update["updated_by"], "updated_by")
        doc = await self.app_groups.find_one_and_update(
            {"_id": to_object_id(group_id)},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return convert_objectid_to_str(doc)

    async def delete_app_group(self, group_id: str) -> bool:
        result = await self.app_groups.delete_one({"_id": to_object_id(group_id)})
        return result.deleted_count > 0

    # ---------- versions ----------

    async def get_app_versions(self, app_id: str) -> list:
        cursor = self.app_versions.find(
            {"app_id": to_object_id(app_id)},
            sort=[("created_at", -1), ("_id", -1)],
        )
        return [convert_objectid_to_str(doc) async for doc in cursor]

    async def get_app_version(self, app_id: str, version: str) -> Optional[Dict[str, Any]]:
        doc = await self.app_versions.find_one({"app_id": to_object_id(app_id), "version": version})
        return convert_objectid_to_str(doc)

    async def create_app_version(self, app_id: str, version: Dict[str, Any]) -> Dict[str, Any]:
        doc = {
            **version,
            "app_id": to_object_id(app_id),
            "status": "draft",
            "created_at": datetime.utcnow(),
            "created_by": to_object_id(version.get("created_by"), "created_by"),
        }
        doc.pop("_id", None)
        doc.pop("published_at", None)
        try:
            await self.app_versions.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("Version already exists")
        return convert_objectid_to_str(doc)

    async def update_app_version(self, app_id: str, version: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Versions are immutable: the update is stored as a new draft cloned from `version`.

        The clone gets a synthesized version string, `{version}-updated-{epoch millis}`.
        """
        current = await self.get_app_version(app_id, version)
        if not current:
            return None
        clone = {
            **current,
            **changes,
            "version": f"{version}-updated-{int(time.time() * 1000)}",
            "created_by": current["created_by"],
        }
        return await self.create_app_version(app_id, clone)

    async def publish_app_version(self, app_id: str, version: str) -> Optional[Dict[str, Any]]:
        doc = await self.app_versions.find_one_and_update(
            {"app_id": to_object_id(app_id), "version": version},
            {"$set": {"status": "published", "published_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            logger.info(f"Published version {version} of app {app_id}")
        return convert_objectid_to_str(doc)
