"""Models for custom field definitions and their per-entity values."""
from __future__ import annotations

import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Double,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mssp.models.base import Base


class FieldType(str, Enum):
    """Supported custom field data types."""

    TEXT_SINGLE_LINE = "text_single_line"
    TEXT_MULTI_LINE = "text_multi_line"
    TEXT_RICH = "text_rich"
    NUMBER_INTEGER = "number_integer"
    NUMBER_DECIMAL = "number_decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    SELECT_SINGLE_DROPDOWN = "select_single_dropdown"
    SELECT_MULTI_CHECKBOX = "select_multi_checkbox"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    JSON_DATA = "json_data"


SELECT_FIELD_TYPES = frozenset(
    {FieldType.SELECT_SINGLE_DROPDOWN, FieldType.SELECT_MULTI_CHECKBOX}
)
NUMERIC_FIELD_TYPES = frozenset(
    {
        FieldType.NUMBER_INTEGER,
        FieldType.NUMBER_DECIMAL,
        FieldType.CURRENCY,
        FieldType.PERCENTAGE,
    }
)
DATE_TIME_FIELD_TYPES = frozenset({FieldType.DATE, FieldType.DATETIME, FieldType.TIME})


class EntityType(str, Enum):
    """Business entities that can carry custom fields."""

    CLIENT = "client"
    CONTRACT = "contract"
    PROPOSAL = "proposal"
    SERVICE = "service"
    SERVICE_SCOPE = "service_scope"
    HARDWARE_ASSET = "hardware_asset"
    USER = "user"
    FINANCIAL_TRANSACTION = "financial_transaction"
    LICENSE_POOL = "license_pool"
    TEAM_ASSIGNMENT = "team_assignment"


class FieldDefinition(Base):
    """Administrative definition of a custom field for one entity type."""

    __tablename__ = "custom_field_definitions"
    __table_args__ = (
        UniqueConstraint("entity_type", "name", name="uq_custom_field_entity_name"),
        Index("ix_custom_field_entity_order", "entity_type", "display_order"),
        Index("ix_custom_field_entity_active", "entity_type", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[EntityType] = mapped_column(
        SQLEnum(EntityType, name="custom_field_entity_type"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[FieldType] = mapped_column(
        SQLEnum(FieldType, name="custom_field_type"), nullable=False
    )
    select_options: Mapped[list[str] | None] = mapped_column(JSON)
    is_required: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    placeholder_text: Mapped[str | None] = mapped_column(String(255))
    help_text: Mapped[str | None] = mapped_column(Text())
    validation_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    default_value: Mapped[Any | None] = mapped_column(JSON(none_as_null=True))
    is_active: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    values: Mapped[list["FieldValue"]] = relationship(
        back_populates="definition", passive_deletes=True
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("is_required", False)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("display_order", 0)
        super().__init__(**kwargs)

    @property
    def has_select_options(self) -> bool:
        return self.field_type in SELECT_FIELD_TYPES

    @property
    def is_numeric(self) -> bool:
        return self.field_type in NUMERIC_FIELD_TYPES

    @property
    def is_date_time(self) -> bool:
        return self.field_type in DATE_TIME_FIELD_TYPES


class FieldValue(Base):
    """Value of one custom field for one entity instance.

    Exactly one typed column is populated; the owning definition's field type
    decides which one is read back.
    """

    __tablename__ = "custom_field_values"
    __table_args__ = (
        UniqueConstraint(
            "field_definition_id", "entity_id", name="uq_custom_field_value_entity"
        ),
        Index("ix_custom_field_values_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    field_definition_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("custom_field_definitions.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[EntityType] = mapped_column(
        SQLEnum(EntityType, name="custom_field_entity_type"), nullable=False
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    string_value: Mapped[str | None] = mapped_column(Text())
    integer_value: Mapped[int | None] = mapped_column(BigInteger())
    decimal_value: Mapped[float | None] = mapped_column(Double())
    boolean_value: Mapped[bool | None] = mapped_column(Boolean())
    date_value: Mapped[date | None] = mapped_column(Date())
    datetime_value: Mapped[datetime | None] = mapped_column(DateTime(timezone=False))
    time_value: Mapped[time | None] = mapped_column(Time())
    json_value: Mapped[Any | None] = mapped_column(JSON(none_as_null=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    definition: Mapped[FieldDefinition] = relationship(back_populates="values")
