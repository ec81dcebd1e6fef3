from fastapi import APIRouter, Depends, HTTPException

from formadmin.dependencies import get_app_service
from formadmin.responses import registry_ok
from formadmin.schemas import AppMemberIn, AppMemberRoleUpdate
from formadmin.services.app_service import AppService

router = APIRouter(prefix="/api/v1/apps", tags=["app-members"])


async def _require_app(app_id: str, service: AppService) -> None:
    if not await service.get_app_by_id(app_id):
        raise HTTPException(status_code=404, detail="App not found")


@router.get("/{app_id}/members")
async def list_members(app_id: str, service: AppService = Depends(get_app_service)):
    await _require_app(app_id, service)
    members = await service.get_app_users(app_id)
    return registry_ok("Members fetched", members)


@router.post("/{app_id}/members", status_code=201)
async def add_member(app_id: str, member: AppMemberIn, service: AppService = Depends(get_app_service)):
    await _require_app(app_id, service)
    created = await service.add_app_user(app_id, member.user_id, member.role)
    return registry_ok("Member added", created, code=201)


@router.put("/{app_id}/members/{user_id}")
async def update_member_role(app_id: str, user_id: str, payload: AppMemberRoleUpdate,
                             service: AppService = Depends(get_app_service)):
    member = await service.update_app_user_role(app_id, user_id, payload.role)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return registry_ok("Member role updated", member)


@router.delete("/{app_id}/members/{user_id}")
async def remove_member(app_id: str, user_id: str, service: AppService = Depends(get_app_service)):
    removed = await service.remove_app_user(app_id, user_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Member not found")
    return registry_ok("Member removed")
