"""
Schemas Module

Pydantic models for API request/response validation.

The JSON API speaks camelCase (``ownerId``, ``isActive``, ``fieldId``);
request bodies also accept snake_case field names.

Schemas follow the pattern:
- Create/Update: loose request bodies, checked by the validation layer
  so failures carry FormForge error kinds
- Definition models: the normalized, type-checked shapes
- Response models: API projections of stored rows
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated


class CamelModel(BaseModel):
    """Base model rendering camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _coerce_identifier(value: Any) -> Any:
    # Builders often generate numeric ids client-side
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# =============================================================================
# User Schemas
# =============================================================================

class UserCreate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserLogin(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CheckUserRequest(CamelModel):
    email: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None


class PasswordChange(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class UserResponse(CamelModel):
    """Public user projection (never includes the password hash)."""
    id: int
    name: str
    email: str
    avatar: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class AuthResponse(CamelModel):
    message: str
    user: UserResponse
    token: str


class MessageResponse(CamelModel):
    message: str


# =============================================================================
# Field Definition Schemas
# =============================================================================

class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    FILE = "file"
    PHONE = "phone"
    URL = "url"
    RATING = "rating"
    TOGGLE = "toggle"


class FieldValidation(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


class FieldDefinition(CamelModel):
    """One normalized input field embedded in a form."""
    id: str = Field(..., min_length=1)
    type: FieldType
    label: str = Field(..., min_length=1)
    placeholder: Optional[str] = None
    required: bool = False
    options: List[str] = Field(default_factory=list)
    validation: Optional[FieldValidation] = None
    order: int = 0

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        extra="ignore",
    )

    _coerce_id = field_validator("id", mode="before")(_coerce_identifier)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class FormSettings(CamelModel):
    allow_multiple_responses: bool = True
    require_authentication: bool = False
    show_progress_bar: bool = True
    submit_button_text: str = "Submit"
    success_message: str = "Thank you for your response!"

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


# =============================================================================
# Form Schemas
# =============================================================================

class FormCreate(CamelModel):
    """Raw form-definition payload; checked by services.form.validation."""
    title: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[Any]] = None
    theme: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    deadline: Optional[datetime] = None
    category: Optional[str] = None

    @field_validator("deadline")
    @classmethod
    def _deadline_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Stored timestamps are naive UTC; convert offset-aware input."""
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class FormUpdate(FormCreate):
    """Patch payload: only keys present in the request are applied."""
    pass


class FormResponse(CamelModel):
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    theme: str
    deadline: Optional[datetime] = None
    category: str = ""
    settings: FormSettings
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PublicFormView(CamelModel):
    """Projection served to respondents: no owner id, no active flag."""
    id: int
    title: str
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    theme: str
    settings: FormSettings
    created_at: datetime


class FormListItem(FormResponse):
    response_count: int = 0


# =============================================================================
# Answer Values (tagged union)
# =============================================================================

class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    value: str


class ChoicesValue(BaseModel):
    kind: Literal["choices"] = "choices"
    value: List[Any]


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: Union[int, float]


class FlagValue(BaseModel):
    kind: Literal["flag"] = "flag"
    value: bool


class EmptyValue(BaseModel):
    kind: Literal["empty"] = "empty"
    value: Optional[Union[str, List[Any]]] = None


class RawValue(BaseModel):
    """Any other JSON shape, kept verbatim."""
    kind: Literal["raw"] = "raw"
    value: Any = None


AnswerValue = Annotated[
    Union[TextValue, ChoicesValue, NumberValue, FlagValue, EmptyValue, RawValue],
    Field(discriminator="kind"),
]


# =============================================================================
# Submission Schemas
# =============================================================================

class AnswerIn(CamelModel):
    """One raw answer entry as sent by a client."""
    field_id: Optional[str] = None
    field_type: Optional[str] = None
    label: Optional[str] = None
    value: Any = None
    required: Optional[bool] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    _coerce_field_id = field_validator("field_id", mode="before")(_coerce_identifier)


class NormalizedAnswer(CamelModel):
    field_id: str
    field_type: str
    label: str
    value: AnswerValue
    required: bool = False

    def to_document(self) -> Dict[str, Any]:
        """Stored shape: the raw value, not the tag."""
        return {
            "field_id": self.field_id,
            "field_type": self.field_type,
            "label": self.label,
            "value": self.value.value,
            "required": self.required,
        }


class NormalizedResponse(CamelModel):
    form_id: int
    answers: List[NormalizedAnswer]
    time_spent: Optional[float] = None


class SubmissionCreate(CamelModel):
    form_id: Optional[int] = None
    responses: Optional[List[Any]] = None
    time_spent: Optional[float] = None


class SubmissionResult(CamelModel):
    message: str
    response_id: int


class AnswerOut(CamelModel):
    field_id: str
    field_type: str
    label: str
    value: Any = None
    required: bool = False


class ResolvedAnswerOut(AnswerOut):
    """Answer with type and label resolved against the form's current fields."""
    field_label: str


class ResponseOut(CamelModel):
    id: int
    form_id: int
    user_id: int
    responses: List[AnswerOut] = Field(default_factory=list)
    submitted_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    time_spent: Optional[float] = None
    device_type: str
    browser: Optional[str] = None
    os: Optional[str] = None

    @classmethod
    def from_model(cls, response) -> "ResponseOut":
        return cls(
            id=response.id,
            form_id=response.form_id,
            user_id=response.user_id,
            responses=[AnswerOut.model_validate(a) for a in response.answers or []],
            submitted_at=response.submitted_at,
            ip_address=response.ip_address,
            user_agent=response.user_agent,
            time_spent=response.time_spent,
            device_type=response.device_type,
            browser=response.browser,
            os=response.os,
        )


class ResponseDetail(ResponseOut):
    form_title: str


class SubmitterInfo(CamelModel):
    name: str
    email: str


class ResponseWithSubmitter(CamelModel):
    id: int
    user: Optional[SubmitterInfo] = None
    form_title: str
    responses: List[AnswerOut] = Field(default_factory=list)
    submitted_at: datetime
    device_type: str
    browser: Optional[str] = None
    ip_address: Optional[str] = None


class SubmissionRow(CamelModel):
    id: int
    responses: List[ResolvedAnswerOut] = Field(default_factory=list)
    submitted_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: str
    browser: Optional[str] = None
    os: Optional[str] = None
    time_spent: Optional[float] = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_submissions: int
    has_next_page: bool
    has_prev_page: bool


class SubmissionPage(CamelModel):
    submissions: List[SubmissionRow] = Field(default_factory=list)
    pagination: Pagination


# =============================================================================
# Error Schema
# =============================================================================

class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
