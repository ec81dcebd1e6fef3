from fastapi import APIRouter, Depends, HTTPException

from formadmin.dependencies import get_app_service
from formadmin.responses import registry_ok
from formadmin.schemas import AppGroupCreate, AppGroupUpdate
from formadmin.services.app_service import AppService

router = APIRouter(prefix="/api/v1/app-groups", tags=["app-groups"])


@router.get("")
async def list_groups(service: AppService = Depends(get_app_service)):
    groups = await service.get_app_groups()
    return registry_ok("Groups fetched", groups)


@router.post("", status_code=201)
async def create_group(group: AppGroupCreate, service: AppService = Depends(get_app_service)):
    created = await service.create_app_group(group.model_dump(exclude_none=True))
    return registry_ok("Group created", created, code=201)


@router.put("/{group_id}")
async def update_group(group_id: str, group: AppGroupUpdate, service: AppService = Depends(get_app_service)):
    updated = await service.update_app_group(group_id, group.model_dump(exclude_unset=True))
    if not updated:
        raise HTTPException(status_code=404, detail="Group not found")
    return registry_ok("Group updated", updated)


@router.delete("/{group_id}")
async def delete_group(group_id: str, service: AppService = Depends(get_app_service)):
    deleted = await service.delete_app_group(group_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Group not found")
    return registry_ok("Group deleted")
