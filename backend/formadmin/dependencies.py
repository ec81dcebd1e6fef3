from fastapi import Depends

from formadmin.database import get_forms_db, get_registry_db
from formadmin.services.app_service import AppService
from formadmin.services.form_service import FormService


def get_form_service(db=Depends(get_forms_db)) -> FormService:
    return FormService(db)


def get_app_service(db=Depends(get_registry_db)) -> AppService:
    return AppService(db)
