import logging
import math
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from formadmin.database import convert_objectid_to_str
from formadmin.errors import DuplicateError, ValidationFailed
from formadmin.schema_form import SchemaError, SchemaForm

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"
INSTANCE_STATUSES = ("draft", "submitted", "approved", "rejected")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_instance_id(form_id: str) -> str:
    """`{formId}_{epoch millis}_{9 random base36 chars}`"""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{form_id}_{millis}_{suffix}"


def page_of(data: list, total: int, page: int, page_size: int) -> Dict[str, Any]:
    return {
        "data": data,
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if page_size else 0,
    }


def parse_date_bound(value: str, end_of_day: bool = False) -> datetime:
    """Accept YYYY-MM-DD or ISO datetime; date-only end bounds cover the whole day."""
    try:
        if "T" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except (ValueError, AttributeError):
        raise ValidationFailed(f"Invalid date {value!r}. Use YYYY-MM-DD or ISO format (YYYY-MM-DDTHH:mm:ss)")
    if end_of_day:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
    return parsed


def compile_form(schema: Dict[str, Any]) -> SchemaForm:
    try:
        return SchemaForm(schema)
    except SchemaError as e:
        raise ValidationFailed(f"Invalid form schema: {e}")


class FormService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.definitions = db["form_definitions"]
        self.instances = db["form_instances"]

    # ---------- form definitions ----------

    async def create_form_definition(self, data: Dict[str, Any], created_by: str = SYSTEM_USER) -> Dict[str, Any]:
        compile_form(data["schema"])
        now = datetime.utcnow()
        doc = {
            **data,
            "version": 1,
            "status": data.get("status") or "draft",
            "createdBy": created_by,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            await self.definitions.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError(f"Form definition '{data['formId']}' already exists")
        logger.info(f"Created form definition {data['formId']}")
        return convert_objectid_to_str(doc)

    async def get_form_definition(self, form_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.definitions.find_one(
            {"formId": form_id, "status": {"$ne": "archived"}},
            sort=[("version", -1)],
        )
        return convert_objectid_to_str(doc)

    async def update_form_definition(self, form_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        current = await self.definitions.find_one({"formId": form_id})
        if not current:
            return None

        update: Dict[str, Any] = {"$set": {**changes, "updatedAt": datetime.utcnow()}}
        if "schema" in changes:
            compile_form(changes["schema"])
            if changes["schema"] != current.get("schema"):
                update["$inc"] = {"version": 1}
                logger.info(f"Schema of {form_id} changed, bumping version from {current.get('version', 1)}")

        doc = await self.definitions.find_one_and_update(
            {"formId": form_id},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return convert_objectid_to_str(doc)

    async def delete_form_definition(self, form_id: str) -> bool:
        """Soft delete: archived definitions disappear from default queries."""
        result = await self.definitions.update_one(
            {"formId": form_id, "status": {"$ne": "archived"}},
            {"$set": {"status": "archived", "updatedAt": datetime.utcnow()}},
        )
        if result.modified_count > 0:
            logger.info(f"Archived form definition {form_id}")
        return result.modified_count > 0

    async def list_form_definitions(self, page: int = 1, page_size: int = 20, status: Optional[str] = None) -> Dict[str, Any]:
        query: Dict[str, Any] = {"status": status} if status else {"status": {"$ne": "archived"}}
        cursor = self.definitions.find(
            query,
            sort=[("createdAt", -1), ("_id", -1)],
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        data = [convert_objectid_to_str(doc) async for doc in cursor]
        total = await self.definitions.count_documents(query)
        return page_of(data, total, page, page_size)

    async def validate_form_data(self, form_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        definition = await self.get_form_definition(form_id)
        if not definition:
            return None
        form = compile_form(definition["schema"])
        errors = form.validate(values)
        return {
            "valid": not errors,
            "errors": [error.to_dict() for error in errors],
            "values": form.collect(values),
        }

    # ---------- form instances ----------

    async def create_form_instance(self, data: Dict[str, Any], submitted_by: str = SYSTEM_USER,
                                   validate: bool = False) -> Dict[str, Any]:
        form_id = data["formId"]
        definition = await self.get_form_definition(form_id)
        if not definition:
            raise ValidationFailed("Form definition not found")

        if validate:
            errors = compile_form(definition["schema"]).validate(data["data"])
            if errors:
                raise ValidationFailed("Form data is invalid", details=[e.to_dict() for e in errors])

        now = datetime.utcnow()
        doc = {
            "instanceId": generate_instance_id(form_id),
            "formId": form_id,
            "formVersion": definition.get("version", 1),
            "data": data["data"],
            "status": data.get("status") or "draft",
            "submittedBy": submitted_by,
            "createdAt": now,
            "updatedAt": now,
        }
        if doc["status"] == "submitted":
            doc["submittedAt"] = now

        try:
            await self.instances.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("Form instance id collision, retry the request")
        return convert_objectid_to_str(doc)

    async def get_form_instance(self, instance_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.instances.find_one({"instanceId": instance_id})
        return convert_objectid_to_str(doc)

    async def update_form_instance(self, instance_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        current = await self.instances.find_one({"instanceId": instance_id})
        if not current:
            return None

        now = datetime.utcnow()
        fields = {**changes, "updatedAt": now}
        # submittedAt is written once, on the first transition to submitted
        if changes.get("status") == "submitted" and not current.get("submittedAt"):
            fields["submittedAt"] = now

        doc = await self.instances.find_one_and_update(
            {"instanceId": instance_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return convert_objectid_to_str(doc)

    async def delete_form_instance(self, instance_id: str) -> bool:
        result = await self.instances.delete_one({"instanceId": instance_id})
        return result.deleted_count > 0

    async def search_form_instances(
        self,
        form_id: Optional[str] = None,
        status: Optional[str] = None,
        submitted_by: Optional[str] = None,
        date_range_start: Optional[str] = None,
        date_range_end: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if form_id:
            query["formId"] = form_id
        if status:
            query["status"] = status
        if submitted_by:
            query["submittedBy"] = submitted_by
        # the range only applies when both ends are given
        if date_range_start and date_range_end:
            query["createdAt"] = {
                "$gte": parse_date_bound(date_range_start),
                "$lte": parse_date_bound(date_range_end, end_of_day="T" not in date_range_end),
            }

        direction = 1 if sort_order == "asc" else -1
        cursor = self.instances.find(
            query,
            sort=[(sort_by, direction), ("_id", direction)],
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        data = [convert_objectid_to_str(doc) async for doc in cursor]
        total = await self.instances.count_documents(query)
        return page_of(data, total, page, page_size)

    async def get_form_instance_stats(self, form_id: Optional[str] = None) -> Dict[str, int]:
        match = {"formId": form_id} if form_id else {}
        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ]
        stats = {"total": 0, **{status: 0 for status in INSTANCE_STATUSES}}
        async for row in self.instances.aggregate(pipeline):
            stats[row["_id"]] = row["count"]
            stats["total"] += row["count"]
        return stats
