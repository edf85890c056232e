"""Storage of custom field values in the entity-attribute-value table."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.models import EntityType, FieldDefinition, FieldType, FieldValue
from mssp.services.field_definitions import get_definitions_map

logger = logging.getLogger(__name__)

STORAGE_COLUMNS: dict[FieldType, str] = {
    FieldType.TEXT_SINGLE_LINE: "string_value",
    FieldType.TEXT_MULTI_LINE: "string_value",
    FieldType.TEXT_RICH: "string_value",
    FieldType.EMAIL: "string_value",
    FieldType.URL: "string_value",
    FieldType.PHONE: "string_value",
    FieldType.SELECT_SINGLE_DROPDOWN: "string_value",
    FieldType.NUMBER_INTEGER: "integer_value",
    FieldType.NUMBER_DECIMAL: "decimal_value",
    FieldType.CURRENCY: "decimal_value",
    FieldType.PERCENTAGE: "decimal_value",
    FieldType.BOOLEAN: "boolean_value",
    FieldType.DATE: "date_value",
    FieldType.DATETIME: "datetime_value",
    FieldType.TIME: "time_value",
    FieldType.SELECT_MULTI_CHECKBOX: "json_value",
    FieldType.JSON_DATA: "json_value",
}
VALUE_COLUMNS = tuple(dict.fromkeys(STORAGE_COLUMNS.values()))


def assign_value(row: FieldValue, field_type: FieldType, value: Any) -> None:
    """Store ``value`` in the column matching ``field_type``, clearing the rest."""

    for column in VALUE_COLUMNS:
        setattr(row, column, None)
    if value is None:
        return
    setattr(row, STORAGE_COLUMNS[field_type], value)


def read_value(row: FieldValue, field_type: FieldType) -> Any:
    return getattr(row, STORAGE_COLUMNS[field_type])


async def save_values(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    data: Mapping[str, Any],
) -> int:
    """Upsert one value per key of ``data`` for the given entity.

    ``data`` is expected to be validated already; keys without an active
    definition are ignored. Returns the number of values written.
    """

    if not data:
        return 0

    definitions = await get_definitions_map(session, entity_type)
    targets = {name: definitions[name] for name in data if name in definitions}
    if not targets:
        return 0

    result = await session.execute(
        select(FieldValue).where(
            FieldValue.entity_id == entity_id,
            FieldValue.field_definition_id.in_(
                [definition.id for definition in targets.values()]
            ),
        )
    )
    rows = {row.field_definition_id: row for row in result.scalars()}

    for name, definition in targets.items():
        row = rows.get(definition.id)
        if row is None:
            row = FieldValue(
                field_definition_id=definition.id,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            session.add(row)
        assign_value(row, definition.field_type, data[name])

    await session.flush()
    logger.info(
        "Saved custom field values",
        extra={
            "entity_type": entity_type.value,
            "entity_id": str(entity_id),
            "count": len(targets),
        },
    )
    return len(targets)


async def get_values(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    *,
    include_inactive: bool = False,
) -> dict[str, Any]:
    """Return ``{field name: typed value}`` for one entity."""

    values = await get_values_for_entities(
        session, entity_type, [entity_id], include_inactive=include_inactive
    )
    return values[entity_id]


async def get_values_for_entities(
    session: AsyncSession,
    entity_type: EntityType,
    entity_ids: Iterable[uuid.UUID],
    *,
    include_inactive: bool = False,
) -> dict[uuid.UUID, dict[str, Any]]:
    """Load values for many entities at once.

    Every requested id is present in the result, with an empty mapping when
    the entity has no stored values.
    """

    values: dict[uuid.UUID, dict[str, Any]] = {entity_id: {} for entity_id in entity_ids}
    if not values:
        return values

    stmt = (
        select(FieldValue, FieldDefinition)
        .join(FieldDefinition, FieldValue.field_definition_id == FieldDefinition.id)
        .where(
            FieldValue.entity_type == entity_type,
            FieldValue.entity_id.in_(list(values)),
        )
        .order_by(FieldDefinition.display_order, FieldDefinition.name)
    )
    if not include_inactive:
        stmt = stmt.where(FieldDefinition.is_active.is_(True))

    result = await session.execute(stmt)
    for row, definition in result.all():
        values.setdefault(row.entity_id, {})[definition.name] = read_value(
            row, definition.field_type
        )
    return values


async def delete_values(
    session: AsyncSession, entity_type: EntityType, entity_id: uuid.UUID
) -> int:
    """Remove every stored value of one entity and return how many were removed."""

    result = await session.execute(
        delete(FieldValue).where(
            FieldValue.entity_type == entity_type,
            FieldValue.entity_id == entity_id,
        )
    )
    removed = result.rowcount or 0
    logger.info(
        "Deleted custom field values",
        extra={
            "entity_type": entity_type.value,
            "entity_id": str(entity_id),
            "count": removed,
        },
    )
    return removed
