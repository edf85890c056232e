"""Pydantic schemas for custom field definitions."""
from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mssp.models.field import SELECT_FIELD_TYPES, EntityType, FieldType

NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")

FieldName = Annotated[str, Field(min_length=1, max_length=100)]
FieldLabel = Annotated[str, Field(min_length=1, max_length=200)]
DisplayOrder = Annotated[int, Field(ge=0, le=9999)]
PlaceholderText = Annotated[str, Field(max_length=255)]


def _validate_name(value: str | None) -> str | None:
    if value is None:
        return None
    if not NAME_PATTERN.fullmatch(value):
        msg = "Name must match pattern [A-Za-z0-9_]"
        raise ValueError(msg)
    return value


def _clean_options(options: list[str] | None) -> list[str] | None:
    if options is None:
        return None
    cleaned: list[str] = []
    for option in options:
        normalized = option.strip()
        if not normalized:
            msg = "Options must not be empty"
            raise ValueError(msg)
        if normalized not in cleaned:
            cleaned.append(normalized)
    return cleaned


class FieldDefinitionCreate(BaseModel):
    entity_type: EntityType
    name: FieldName
    label: FieldLabel
    field_type: FieldType
    select_options: list[str] | None = None
    is_required: bool = False
    display_order: DisplayOrder = 0
    placeholder_text: PlaceholderText | None = None
    help_text: str | None = None
    validation_rules: dict[str, Any] | None = None
    default_value: Any = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _validate_name(value) or value

    @field_validator("select_options")
    @classmethod
    def validate_options_list(cls, options: list[str] | None) -> list[str] | None:
        return _clean_options(options)

    @model_validator(mode="after")
    def validate_options_for_type(self) -> "FieldDefinitionCreate":
        if self.field_type in SELECT_FIELD_TYPES:
            if not self.select_options:
                msg = "Options are required for select fields"
                raise ValueError(msg)
        elif self.select_options is not None:
            msg = "Options are only allowed for select fields"
            raise ValueError(msg)
        return self


class FieldDefinitionUpdate(BaseModel):
    """Partial update; ``entity_type`` is fixed at creation."""

    name: FieldName | None = None
    label: FieldLabel | None = None
    field_type: FieldType | None = None
    select_options: list[str] | None = None
    is_required: bool | None = None
    display_order: DisplayOrder | None = None
    placeholder_text: PlaceholderText | None = None
    help_text: str | None = None
    validation_rules: dict[str, Any] | None = None
    default_value: Any = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_optional_name(cls, value: str | None) -> str | None:
        return _validate_name(value)

    @field_validator("select_options")
    @classmethod
    def validate_options_list(cls, options: list[str] | None) -> list[str] | None:
        return _clean_options(options)


class FieldDefinitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: EntityType
    name: str
    label: str
    field_type: FieldType
    select_options: list[str] | None = None
    is_required: bool
    display_order: int
    placeholder_text: str | None = None
    help_text: str | None = None
    validation_rules: dict[str, Any] | None = None
    default_value: Any = None
    is_active: bool
    has_select_options: bool
    is_numeric: bool
    is_date_time: bool
    created_at: datetime
    updated_at: datetime


class FieldOrder(BaseModel):
    id: uuid.UUID
    display_order: DisplayOrder
