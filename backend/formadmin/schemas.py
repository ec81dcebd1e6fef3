from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Literal, Optional


FormDefinitionStatus = Literal["draft", "published", "archived"]
FormInstanceStatus = Literal["draft", "submitted", "approved", "rejected"]
SortOrder = Literal["asc", "desc"]

AppUserRole = Literal["admin", "developer", "member"]


# ---------- Forms service ----------

class FormSchema(BaseModel):
    """Root of a Formily schema; everything besides `properties` is kept as-is."""
    model_config = ConfigDict(extra="allow")

    type: str = "object"
    properties: Dict[str, Any]


def _definition_document(model) -> Dict[str, Any]:
    """Unset top-level fields are dropped; the schema is stored whole, nulls included."""
    data = model.model_dump(by_alias=True, exclude_none=True, exclude={"form_schema"})
    if model.form_schema is not None:
        data["schema"] = model.form_schema.model_dump()
    return data


class FormDefinitionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    formId: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    # "schema" shadows a BaseModel attribute, hence the alias
    form_schema: FormSchema = Field(alias="schema")
    status: Optional[FormDefinitionStatus] = None

    def to_document(self) -> Dict[str, Any]:
        return _definition_document(self)


class FormDefinitionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    form_schema: Optional[FormSchema] = Field(default=None, alias="schema")
    status: Optional[FormDefinitionStatus] = None

    def to_document(self) -> Dict[str, Any]:
        return _definition_document(self)


class FormInstanceIn(BaseModel):
    formId: str = Field(min_length=1)
    data: Dict[str, Any]
    status: Optional[FormInstanceStatus] = None


class FormInstanceUpdate(BaseModel):
    data: Optional[Dict[str, Any]] = None
    status: Optional[FormInstanceStatus] = None


class FormValuesIn(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)


# ---------- App registry service ----------

class AppCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    group_id: Optional[str] = None
    created_by: str


class AppUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    group_id: Optional[str] = None
    status: Optional[Literal["active", "archived"]] = None
    updated_by: Optional[str] = None


class AppActor(BaseModel):
    user_id: str


class AppGroupCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    created_by: str


class AppGroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    updated_by: Optional[str] = None


class AppMemberIn(BaseModel):
    user_id: str
    role: AppUserRole


class AppMemberRoleUpdate(BaseModel):
    role: AppUserRole


class AppVersionCreate(BaseModel):
    version: str = Field(min_length=1)
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    created_by: str


class AppVersionUpdate(BaseModel):
    description: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class AppVersionPublish(BaseModel):
    updated_by: Optional[str] = None
