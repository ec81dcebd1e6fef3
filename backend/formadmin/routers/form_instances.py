from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Literal, Optional

from formadmin.config import settings
from formadmin.dependencies import get_form_service
from formadmin.schemas import FormInstanceIn, FormInstanceStatus, FormInstanceUpdate, SortOrder
from formadmin.services.form_service import FormService

router = APIRouter(prefix="/form-instances", tags=["form-instances"])


@router.post("", status_code=201)
async def create_form_instance(
    instance: FormInstanceIn,
    validate: bool = Query(False, description="Reject data that fails the form's validators"),
    service: FormService = Depends(get_form_service),
):
    created = await service.create_form_instance(instance.model_dump(exclude_none=True), validate=validate)
    return {"success": True, "data": created}


@router.get("")
async def search_form_instances(
    formId: Optional[str] = None,
    status: Optional[FormInstanceStatus] = None,
    submittedBy: Optional[str] = None,
    dateRangeStart: Optional[str] = Query(None, description="YYYY-MM-DD or ISO datetime"),
    dateRangeEnd: Optional[str] = Query(None, description="YYYY-MM-DD (inclusive) or ISO datetime"),
    page: int = Query(1, ge=1),
    pageSize: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sortBy: Literal["createdAt", "updatedAt", "submittedAt", "status"] = "createdAt",
    sortOrder: SortOrder = "desc",
    service: FormService = Depends(get_form_service),
):
    result = await service.search_form_instances(
        form_id=formId,
        status=status,
        submitted_by=submittedBy,
        date_range_start=dateRangeStart,
        date_range_end=dateRangeEnd,
        page=page,
        page_size=pageSize,
        sort_by=sortBy,
        sort_order=sortOrder,
    )
    return {"success": True, "data": result}


@router.get("/stats")
async def form_instance_stats(formId: Optional[str] = None, service: FormService = Depends(get_form_service)):
    stats = await service.get_form_instance_stats(formId)
    return {"success": True, "data": stats}


@router.get("/{instance_id}")
async def get_form_instance(instance_id: str, service: FormService = Depends(get_form_service)):
    instance = await service.get_form_instance(instance_id)
    if not instance:
        raise HTTPException(status_code=404, detail="Form instance not found")
    return {"success": True, "data": instance}


@router.put("/{instance_id}")
async def update_form_instance(instance_id: str, changes: FormInstanceUpdate, service: FormService = Depends(get_form_service)):
    instance = await service.update_form_instance(instance_id, changes.model_dump(exclude_none=True))
    if not instance:
        raise HTTPException(status_code=404, detail="Form instance not found")
    return {"success": True, "data": instance}


@router.delete("/{instance_id}")
async def delete_form_instance(instance_id: str, service: FormService = Depends(get_form_service)):
    deleted = await service.delete_form_instance(instance_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Form instance not found")
    return {"success": True, "message": "Form instance deleted successfully"}
