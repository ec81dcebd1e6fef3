from fastapi import APIRouter, Depends
from typing import Optional

from formadmin.dependencies import get_form_service
from formadmin.services.form_service import FormService

router = APIRouter(prefix="/form-stats", tags=["form-stats"])


@router.get("")
async def get_form_stats(formId: Optional[str] = None, service: FormService = Depends(get_form_service)):
    """Instance counts per status, optionally for a single form."""
    stats = await service.get_form_instance_stats(formId)
    return {"success": True, "data": stats}
