"""
Form Validation & Normalization

Turns raw form-definition and submission payloads into normalized,
order-stable, type-checked structures, or raises a FormForgeError
before anything is written.

Field definitions:
    - title and at least one field are required
    - each field's type must be one of the recognized field types
    - ``order`` is always reassigned to the field's position
    - ``options`` defaults to an empty list

Submissions are permissive by default: values are kept as sent and
required fields are not enforced. Strict mode checks each answer
against the form's declared field.

Usage:
    from services.form.validation import normalize_field_definitions, normalize_submission

    fields = normalize_field_definitions(payload["fields"])
    normalized = normalize_submission(form, payload["responses"], strict=False)
"""

import re
from collections import Counter
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config.constants import (
    CHOICE_FIELD_TYPES,
    DEFAULT_THEME,
    FIELD_TYPES,
    FORM_THEMES,
    NUMERIC_FIELD_TYPES,
)
from core.schemas import (
    AnswerIn,
    ChoicesValue,
    EmptyValue,
    FieldDefinition,
    FlagValue,
    FormSettings,
    NormalizedAnswer,
    NormalizedResponse,
    NumberValue,
    RawValue,
    TextValue,
)
from utils.exceptions import InvalidFieldTypeError, InvalidInputError, MissingRequiredInputError
from utils.logging import get_logger

logger = get_logger(__name__)


def _schema_errors(error: ValidationError) -> List[Dict[str, Any]]:
    return error.errors(include_url=False, include_context=False, include_input=False)


# =============================================================================
# Form Definition
# =============================================================================

def normalize_title(title: Optional[str]) -> str:
    """Trim a form title; blank titles are missing."""
    cleaned = (title or "").strip()
    if not cleaned:
        raise MissingRequiredInputError("Title is required", field="title")
    return cleaned


def normalize_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    return description.strip()


def normalize_theme(theme: Optional[str]) -> str:
    if theme is None or theme == "":
        return DEFAULT_THEME
    if theme not in FORM_THEMES:
        raise InvalidInputError(
            f"Invalid theme: {theme!r}",
            field="theme",
            details={"allowed": list(FORM_THEMES)},
        )
    return theme


def normalize_settings(raw_settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge caller settings over the defaults."""
    if raw_settings is None:
        return FormSettings().model_dump()
    if not isinstance(raw_settings, dict):
        raise InvalidInputError("Settings must be an object", field="settings")

    try:
        parsed = FormSettings.model_validate(raw_settings)
    except ValidationError as e:
        raise InvalidInputError(
            "Invalid form settings",
            field="settings",
            details={"errors": _schema_errors(e)},
        ) from e
    return parsed.model_dump()


def _normalize_field(raw: Any, index: int) -> FieldDefinition:
    if not isinstance(raw, dict):
        raise InvalidInputError(
            f"Field at position {index} must be an object",
            field="fields",
            details={"index": index},
        )

    field_id = raw.get("id")
    field_type = raw.get("type")

    if field_type is None or field_type == "":
        raise MissingRequiredInputError(
            f"Field at position {index} has no type",
            field="type",
            details={"index": index},
        )
    if field_type not in FIELD_TYPES:
        raise InvalidFieldTypeError(
            field_type=field_type,
            field_id=None if field_id is None else str(field_id),
        )
    if field_id is None or field_id == "":
        raise MissingRequiredInputError(
            f"Field at position {index} has no id",
            field="id",
            details={"index": index},
        )
    if not raw.get("label"):
        raise MissingRequiredInputError(
            f"Field {field_id!r} has no label",
            field="label",
            details={"index": index},
        )

    # Caller-supplied order is discarded
    payload = {**raw, "order": index}
    if payload.get("options") is None:
        payload["options"] = []

    try:
        return FieldDefinition.model_validate(payload)
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid definition for field {field_id!r}",
            field="fields",
            details={"index": index, "errors": _schema_errors(e)},
        ) from e


def normalize_field_definitions(raw_fields: Optional[List[Any]]) -> List[Dict[str, Any]]:
    """
    Validate and normalize an ordered list of field definitions.

    Args:
        raw_fields: Field payloads as sent by the form builder

    Returns:
        list: Field documents ready for storage, ``order`` equal to index

    Raises:
        MissingRequiredInputError: Empty list, or a field without id/type/label
        InvalidFieldTypeError: Unrecognized field type
        InvalidInputError: Malformed field payload
    """
    if not raw_fields:
        raise MissingRequiredInputError("At least one field is required", field="fields")
    if not isinstance(raw_fields, list):
        raise InvalidInputError("Fields must be a list", field="fields")

    fields = [_normalize_field(raw, index) for index, raw in enumerate(raw_fields)]

    duplicates = [fid for fid, n in Counter(f.id for f in fields).items() if n > 1]
    if duplicates:
        logger.warning(f"Form definition has duplicate field ids: {duplicates}")

    return [f.to_document() for f in fields]


# =============================================================================
# Submissions
# =============================================================================

def validate_submission_envelope(form_id: Any, raw_answers: Any) -> None:
    """Require a form id and a non-empty answer list."""
    if form_id is None:
        raise MissingRequiredInputError("Form ID is required", field="formId")
    if not raw_answers or not isinstance(raw_answers, list):
        raise MissingRequiredInputError("Responses are required", field="responses")


def tag_value(value: Any):
    """Tag a raw answer value by its runtime shape."""
    if value is None or value == "":
        return EmptyValue(value=value)
    if isinstance(value, bool):
        return FlagValue(value=value)
    if isinstance(value, (int, float)):
        return NumberValue(value=value)
    if isinstance(value, str):
        return TextValue(value=value)
    if isinstance(value, list):
        return ChoicesValue(value=value)
    return RawValue(value=value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _strict_number(field_id: str, value: Any, field: Dict[str, Any]) -> NumberValue:
    if isinstance(value, bool):
        raise InvalidInputError(f"Field {field_id!r} expects a number", field=field_id)
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidInputError(f"Field {field_id!r} expects a number", field=field_id)
        value = int(number) if number.is_integer() else number
    if not isinstance(value, (int, float)):
        raise InvalidInputError(f"Field {field_id!r} expects a number", field=field_id)

    limits = field.get("validation") or {}
    if limits.get("min") is not None and value < limits["min"]:
        raise InvalidInputError(
            f"Field {field_id!r} must be at least {limits['min']}", field=field_id
        )
    if limits.get("max") is not None and value > limits["max"]:
        raise InvalidInputError(
            f"Field {field_id!r} must be at most {limits['max']}", field=field_id
        )
    return NumberValue(value=value)


def _strict_text(field_id: str, value: Any, field: Dict[str, Any]) -> TextValue:
    if not isinstance(value, str):
        raise InvalidInputError(f"Field {field_id!r} expects text", field=field_id)

    pattern = (field.get("validation") or {}).get("pattern")
    if pattern:
        try:
            matched = re.search(pattern, value) is not None
        except re.error:
            logger.warning(f"Ignoring unparseable pattern on field {field_id!r}: {pattern!r}")
            matched = True
        if not matched:
            raise InvalidInputError(
                f"Field {field_id!r} does not match the expected format", field=field_id
            )
    return TextValue(value=value)


def _strict_value(field: Dict[str, Any], value: Any):
    """Check a non-empty value against the declared field and tag it."""
    field_id = field["id"]
    field_type = field["type"]
    options = field.get("options") or []

    if field_type in NUMERIC_FIELD_TYPES:
        return _strict_number(field_id, value, field)

    if field_type == "toggle":
        if not isinstance(value, bool):
            raise InvalidInputError(f"Field {field_id!r} expects true or false", field=field_id)
        return FlagValue(value=value)

    if field_type == "checkbox":
        choices = [value] if isinstance(value, str) else value
        if not isinstance(choices, list) or not all(isinstance(c, str) for c in choices):
            raise InvalidInputError(f"Field {field_id!r} expects a list of options", field=field_id)
        unknown = [c for c in choices if options and c not in options]
        if unknown:
            raise InvalidInputError(
                f"Field {field_id!r} received unknown options",
                field=field_id,
                details={"unknown": unknown},
            )
        return ChoicesValue(value=choices)

    if field_type in CHOICE_FIELD_TYPES:
        if not isinstance(value, str):
            raise InvalidInputError(f"Field {field_id!r} expects one option", field=field_id)
        if options and value not in options:
            raise InvalidInputError(
                f"Field {field_id!r} received an unknown option",
                field=field_id,
                details={"value": value},
            )
        return TextValue(value=value)

    return _strict_text(field_id, value, field)


def _normalize_answer(form, raw: Any, index: int, strict: bool) -> NormalizedAnswer:
    if not isinstance(raw, dict):
        raise InvalidInputError(
            f"Response at position {index} must be an object",
            field="responses",
            details={"index": index},
        )
    try:
        answer = AnswerIn.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid response at position {index}",
            field="responses",
            details={"index": index, "errors": _schema_errors(e)},
        ) from e

    if not answer.field_id:
        raise MissingRequiredInputError(
            f"Response at position {index} has no field id",
            field="fieldId",
            details={"index": index},
        )

    field = form.find_field(answer.field_id)
    if strict and field is None:
        raise InvalidInputError(
            f"Unknown field: {answer.field_id!r}",
            field=answer.field_id,
        )

    field_type = answer.field_type or (field or {}).get("type")
    label = answer.label or (field or {}).get("label")
    if not field_type or not label:
        raise MissingRequiredInputError(
            f"Response for field {answer.field_id!r} needs a field type and label",
            field=answer.field_id,
        )

    if answer.required is not None:
        required = answer.required
    else:
        required = bool((field or {}).get("required", False))

    if strict:
        if _is_empty(answer.value):
            if field.get("required"):
                raise MissingRequiredInputError(
                    f"Field {field.get('label')!r} is required",
                    field=answer.field_id,
                )
            value = EmptyValue(value=answer.value)
        else:
            value = _strict_value(field, answer.value)
        field_type = field["type"]
    else:
        value = tag_value(answer.value)

    return NormalizedAnswer(
        field_id=answer.field_id,
        field_type=field_type,
        label=label,
        value=value,
        required=required,
    )


def normalize_submission(
    form,
    raw_answers: List[Any],
    time_spent: Optional[float] = None,
    strict: bool = False,
) -> NormalizedResponse:
    """
    Normalize a submission against the form's current fields.

    Args:
        form: Form model the answers belong to
        raw_answers: Answer payloads in submission order
        time_spent: Seconds spent filling the form
        strict: Reject unknown fields, missing required answers and
            values that do not fit the declared field type

    Returns:
        NormalizedResponse with tagged answer values

    Raises:
        MissingRequiredInputError: No answers, or an answer lacking field id/type/label
        InvalidInputError: Malformed answer, or a strict-mode violation
    """
    validate_submission_envelope(form.id, raw_answers)

    answers = [
        _normalize_answer(form, raw, index, strict)
        for index, raw in enumerate(raw_answers)
    ]

    if strict:
        answered = {a.field_id for a in answers if a.value.kind != "empty"}
        missing = [
            f["id"] for f in form.fields or []
            if f.get("required") and f["id"] not in answered
        ]
        if missing:
            raise MissingRequiredInputError(
                "Required fields are missing",
                field=missing[0],
                details={"missing": missing},
            )

    if time_spent is not None and time_spent < 0:
        raise InvalidInputError("Time spent cannot be negative", field="timeSpent")

    return NormalizedResponse(form_id=form.id, answers=answers, time_spent=time_spent)
