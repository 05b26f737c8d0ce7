"""Dynamic form schema attached to workflow definitions.

A definition carries a list of form fields describing the data an initiator
submits. Fields are validated when the definition is saved and submitted
``form_data`` is checked against required fields when an instance starts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from litestar_approvals.core.types import StrEnum
from litestar_approvals.exceptions import FormValidationError

__all__ = [
    "DATE_FORMATS",
    "FieldType",
    "FormField",
    "form_field_from_dict",
    "form_field_to_dict",
    "form_fields_from_dict",
    "validate_form",
    "validate_form_data",
    "validate_form_fields",
]

DATE_FORMATS = frozenset({"YYYY-MM-DD", "YYYY-MM-DD HH:mm"})
MAX_UNIT_LENGTH = 8
_FIELD_NAME = re.compile(r"^[A-Za-z0-9_]+$")


class FieldType(StrEnum):
    """Widget types available in the form designer."""

    SINGLELINE_TEXT = "SINGLELINE_TEXT"
    MULTILINE_TEXT = "MULTILINE_TEXT"
    DESCRIBE = "DESCRIBE"
    NUMBER = "NUMBER"
    MONEY = "MONEY"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTI_CHOICE = "MULTI_CHOICE"
    DATE = "DATE"
    DATE_RANGE = "DATE_RANGE"
    DETAIL = "DETAIL"
    PICTURE = "PICTURE"
    ATTACHMENT = "ATTACHMENT"
    DEPARTMENT = "DEPARTMENT"
    EMPLOYEE = "EMPLOYEE"
    AREA = "AREA"
    FLOW_INST = "FLOW_INST"


@dataclass(frozen=True)
class FormField:
    """A single field in a workflow form.

    Attributes:
        name: Machine name; the key under which the value appears in ``form_data``.
        label: Display label.
        type: Widget type.
        placeholder: Hint text shown in an empty input.
        required: Whether a value must be submitted.
        summary: Whether the value is shown in task list summaries.
        editable: Whether approvers may edit the value.
        options: Choices for single and multi choice fields.
        unit: Unit suffix for number and money fields.
        format: Date format for date fields.
        comma: Whether money values use a thousands separator.
        details: Sub-fields of a detail (table) field.
    """

    name: str
    label: str
    type: FieldType
    placeholder: str | None = None
    required: bool = False
    summary: bool = False
    editable: bool = True
    options: list[str] = field(default_factory=list)
    unit: str | None = None
    format: str | None = None
    comma: bool = False
    details: list[FormField] = field(default_factory=list)


def form_field_from_dict(data: dict[str, Any]) -> FormField:
    """Parse a form field from its wire form.

    Raises:
        FormValidationError: If the field is not an object or has an unknown type.
    """
    if not isinstance(data, dict):
        raise FormValidationError(["Form field must be an object"])
    raw_type = data.get("type")
    try:
        field_type = FieldType(raw_type)
    except ValueError as e:
        raise FormValidationError([f"Field '{data.get('name')}': unknown type {raw_type!r}"]) from e
    return FormField(
        name=data.get("name") or "",
        label=data.get("label") or "",
        type=field_type,
        placeholder=data.get("placeholder"),
        required=bool(data.get("required", False)),
        summary=bool(data.get("summary", False)),
        editable=bool(data.get("editable", True)),
        options=list(data.get("options") or []),
        unit=data.get("unit"),
        format=data.get("format"),
        comma=bool(data.get("comma", False)),
        details=[form_field_from_dict(d) for d in data.get("details") or []],
    )


def form_fields_from_dict(data: list[dict[str, Any]] | None) -> list[FormField]:
    """Parse a list of form fields."""
    return [form_field_from_dict(d) for d in data or []]


def form_field_to_dict(form_field: FormField) -> dict[str, Any]:
    """Serialize a form field to its wire form."""
    data: dict[str, Any] = {
        "name": form_field.name,
        "label": form_field.label,
        "type": form_field.type.value,
        "required": form_field.required,
        "summary": form_field.summary,
        "editable": form_field.editable,
        "comma": form_field.comma,
    }
    for key in ("placeholder", "unit", "format"):
        value = getattr(form_field, key)
        if value is not None:
            data[key] = value
    if form_field.options:
        data["options"] = list(form_field.options)
    if form_field.details:
        data["details"] = [form_field_to_dict(d) for d in form_field.details]
    return data


def _validate_field(form_field: FormField, path: str) -> list[str]:
    errors: list[str] = []
    where = f"{path}{form_field.name or '?'}"

    if not form_field.name or not form_field.label:
        errors.append(f"{where}: field name, label, and type are required")
        return errors
    if not _FIELD_NAME.match(form_field.name):
        errors.append(f"{where}: field name must contain only letters, numbers, and underscores")

    match form_field.type:
        case FieldType.SINGLE_CHOICE | FieldType.MULTI_CHOICE:
            if not form_field.options:
                errors.append(f"{where}: {form_field.type} field must have options")
        case FieldType.NUMBER | FieldType.MONEY:
            if form_field.unit and len(form_field.unit) > MAX_UNIT_LENGTH:
                errors.append(f"{where}: unit length cannot exceed {MAX_UNIT_LENGTH} characters")
        case FieldType.DATE | FieldType.DATE_RANGE:
            if form_field.format and form_field.format not in DATE_FORMATS:
                errors.append(f"{where}: invalid date format {form_field.format!r}")
        case FieldType.DETAIL:
            if not form_field.details:
                errors.append(f"{where}: detail field must have sub-fields")
            else:
                errors.extend(_validate_level(form_field.details, f"{where}."))
    return errors


def _validate_level(fields: list[FormField], path: str) -> list[str]:
    errors: list[str] = []
    seen: set[str] = set()
    for form_field in fields:
        if form_field.name in seen:
            errors.append(f"{path}{form_field.name}: duplicate field name")
        seen.add(form_field.name)
        errors.extend(_validate_field(form_field, path))
    return errors


def validate_form_fields(fields: list[FormField]) -> list[str]:
    """Collect every violation in a form schema.

    Args:
        fields: Top-level form fields.

    Returns:
        Error messages; empty when the form is valid.
    """
    if not fields:
        return ["Form must have at least one field"]
    return _validate_level(fields, "")


def validate_form(fields: list[FormField]) -> None:
    """Validate a form schema.

    Raises:
        FormValidationError: If any rule is violated.
    """
    errors = validate_form_fields(fields)
    if errors:
        raise FormValidationError(errors)


def validate_form_data(fields: list[FormField], form_data: dict[str, Any]) -> None:
    """Check that submitted data carries every required top-level field.

    Args:
        fields: The definition's form fields.
        form_data: Values submitted by the initiator.

    Raises:
        FormValidationError: If a required value is missing or empty.
    """
    missing = [
        f"{f.name}: value is required"
        for f in fields
        if f.required and form_data.get(f.name) in (None, "", [])
    ]
    if missing:
        raise FormValidationError(missing)
