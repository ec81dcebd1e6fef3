from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Literal, Optional

from formadmin.config import settings
from formadmin.dependencies import get_app_service
from formadmin.responses import registry_ok
from formadmin.schemas import AppActor, AppCreate, AppUpdate, SortOrder
from formadmin.services.app_service import AppService

router = APIRouter(prefix="/api/v1/apps", tags=["apps"])


@router.get("")
async def list_apps(
    name: Optional[str] = Query(None, description="Case-insensitive name search"),
    group_id: Optional[str] = None,
    status: Optional[Literal["active", "archived", "all"]] = None,
    created_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: Literal["created_at", "updated_at", "name"] = "created_at",
    order: SortOrder = "desc",
    service: AppService = Depends(get_app_service),
):
    result = await service.get_apps(
        {"name": name, "group_id": group_id, "status": status, "created_by": created_by},
        page, limit, sort, order,
    )
    return registry_ok("Apps fetched", **result)


@router.get("/{app_id}")
async def get_app(app_id: str, service: AppService = Depends(get_app_service)):
    app = await service.get_app_by_id(app_id)
    if not app:
        raise HTTPException(status_code=404, detail="App not found")
    return registry_ok("App fetched", app)


@router.post("", status_code=201)
async def create_app(app: AppCreate, service: AppService = Depends(get_app_service)):
    created = await service.create_app(app.model_dump(exclude_none=True))
    return registry_ok("App created", created, code=201)


@router.put("/{app_id}")
async def update_app(app_id: str, app: AppUpdate, service: AppService = Depends(get_app_service)):
    updated = await service.update_app(app_id, app.model_dump(exclude_unset=True))
    if not updated:
        raise HTTPException(status_code=404, detail="App not found")
    return registry_ok("App updated", updated)


@router.delete("/{app_id}")
async def delete_app(app_id: str, user_id: str = Query(..., description="User performing the delete"),
                     service: AppService = Depends(get_app_service)):
    deleted = await service.delete_app(app_id, user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="App not found")
    return registry_ok("App deleted")


@router.post("/{app_id}/archive")
async def archive_app(app_id: str, actor: AppActor, service: AppService = Depends(get_app_service)):
    app = await service.archive_app(app_id, actor.user_id)
    if not app:
        raise HTTPException(status_code=404, detail="App not found")
    return registry_ok("App archived", {"_id": app["_id"], "status": app["status"]})


@router.post("/{app_id}/restore")
async def restore_app(app_id: str, actor: AppActor, service: AppService = Depends(get_app_service)):
    app = await service.restore_app(app_id, actor.user_id)
    if not app:
        raise HTTPException(status_code=404, detail="App not found")
    return registry_ok("App restored", {"_id": app["_id"], "status": app["status"]})
