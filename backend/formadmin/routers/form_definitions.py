from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from typing import Optional

from formadmin.config import settings
from formadmin.dependencies import get_form_service
from formadmin.html_renderer import render_html
from formadmin.schemas import FormDefinitionIn, FormDefinitionStatus, FormDefinitionUpdate, FormValuesIn
from formadmin.services.form_service import FormService, compile_form

router = APIRouter(prefix="/form-definitions", tags=["form-definitions"])


@router.post("", status_code=201)
async def create_form_definition(form: FormDefinitionIn, service: FormService = Depends(get_form_service)):
    # TODO: take createdBy from the authenticated user once auth exists
    definition = await service.create_form_definition(form.to_document())
    return {"success": True, "data": definition}


@router.get("")
async def list_form_definitions(
    page: int = Query(1, ge=1),
    pageSize: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[FormDefinitionStatus] = Query(None, description="Defaults to every status but archived"),
    service: FormService = Depends(get_form_service),
):
    result = await service.list_form_definitions(page, pageSize, status)
    return {"success": True, "data": result}


@router.get("/{form_id}")
async def get_form_definition(form_id: str, service: FormService = Depends(get_form_service)):
    definition = await service.get_form_definition(form_id)
    if not definition:
        raise HTTPException(status_code=404, detail="Form definition not found")
    return {"success": True, "data": definition}


@router.put("/{form_id}")
async def update_form_definition(form_id: str, changes: FormDefinitionUpdate, service: FormService = Depends(get_form_service)):
    definition = await service.update_form_definition(form_id, changes.to_document())
    if not definition:
        raise HTTPException(status_code=404, detail="Form definition not found")
    return {"success": True, "data": definition}


@router.delete("/{form_id}")
async def delete_form_definition(form_id: str, service: FormService = Depends(get_form_service)):
    """Archive the definition; it stays in the collection."""
    deleted = await service.delete_form_definition(form_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Form definition not found")
    return {"success": True, "message": "Form definition deleted successfully"}


@router.post("/{form_id}/validate")
async def validate_form_data(form_id: str, payload: FormValuesIn, service: FormService = Depends(get_form_service)):
    """Run the schema validators (including x-reactions visibility) over a value tree."""
    result = await service.validate_form_data(form_id, payload.values)
    if result is None:
        raise HTTPException(status_code=404, detail="Form definition not found")
    return {"success": True, "data": result}


@router.get("/{form_id}/render", response_class=HTMLResponse)
async def render_form_definition(form_id: str, service: FormService = Depends(get_form_service)):
    definition = await service.get_form_definition(form_id)
    if not definition:
        raise HTTPException(status_code=404, detail="Form definition not found")
    return HTMLResponse(render_html(compile_form(definition["schema"])))
