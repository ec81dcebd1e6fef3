from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from formadmin.dependencies import get_app_service
from formadmin.responses import registry_ok
from formadmin.schemas import AppVersionCreate, AppVersionPublish, AppVersionUpdate
from formadmin.services.app_service import AppService

router = APIRouter(prefix="/api/v1/apps", tags=["app-versions"])


async def _require_app(app_id: str, service: AppService) -> None:
    if not await service.get_app_by_id(app_id):
        raise HTTPException(status_code=404, detail="App not found")


@router.get("/{app_id}/versions")
async def list_versions(app_id: str, service: AppService = Depends(get_app_service)):
    await _require_app(app_id, service)
    versions = await service.get_app_versions(app_id)
    return registry_ok("Versions fetched", versions)


@router.get("/{app_id}/versions/{version}")
async def get_version(app_id: str, version: str, service: AppService = Depends(get_app_service)):
    found = await service.get_app_version(app_id, version)
    if not found:
        raise HTTPException(status_code=404, detail="Version not found")
    return registry_ok("Version fetched", found)


@router.post("/{app_id}/versions", status_code=201)
async def create_version(app_id: str, version: AppVersionCreate, service: AppService = Depends(get_app_service)):
    await _require_app(app_id, service)
    created = await service.create_app_version(app_id, version.model_dump(exclude_none=True))
    return registry_ok("Version created", created, code=201)


@router.put("/{app_id}/versions/{version}")
async def update_version(app_id: str, version: str, changes: AppVersionUpdate,
                         service: AppService = Depends(get_app_service)):
    """Stores the change as a new draft version; the original is left untouched."""
    updated = await service.update_app_version(app_id, version, changes.model_dump(exclude_none=True))
    if not updated:
        raise HTTPException(status_code=404, detail="Version not found")
    return registry_ok("Version updated", updated)


@router.put("/{app_id}/versions/{version}/publish")
async def publish_version(app_id: str, version: str, payload: Optional[AppVersionPublish] = None,
                          service: AppService = Depends(get_app_service)):
    published = await service.publish_app_version(app_id, version)
    if not published:
        raise HTTPException(status_code=404, detail="Version not found")
    return registry_ok("Version published", published)


@router.put("/{app_id}/versions/{version}/unpublish")
async def unpublish_version(app_id: str, version: str):
    raise HTTPException(status_code=501, detail="Unpublishing a version is not implemented")


@router.delete("/{app_id}/versions/{version}")
async def delete_version(app_id: str, version: str):
    raise HTTPException(status_code=501, detail="Deleting a version is not implemented")
