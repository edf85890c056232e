"""Custom field definition management.

Functions flush their changes but never commit; the caller owns the
transaction so a definition change and related writes land together.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.core.errors import ConflictError, CustomFieldValidationError, NotFoundError
from mssp.models import EntityType, FieldDefinition, FieldType, FieldValue
from mssp.models.field import SELECT_FIELD_TYPES
from mssp.schemas import FieldDefinitionCreate, FieldDefinitionUpdate, FieldOrder
from mssp.services.field_validation import definition_problems, normalize_validation_rules

logger = logging.getLogger(__name__)

NON_NULLABLE_UPDATES = frozenset(
    {"name", "label", "field_type", "is_required", "display_order", "is_active"}
)


async def create_definition(
    session: AsyncSession, payload: FieldDefinitionCreate
) -> FieldDefinition:
    """Create a definition, rejecting duplicate names per entity type."""

    existing = await _find_by_name(session, payload.entity_type, payload.name)
    if existing is not None:
        raise _duplicate_name_error(payload.entity_type, payload.name)

    _ensure_consistent(
        payload.field_type,
        select_options=payload.select_options,
        validation_rules=payload.validation_rules,
        default_value=payload.default_value,
    )

    data = payload.model_dump()
    data["validation_rules"] = normalize_validation_rules(
        payload.field_type, payload.validation_rules
    )
    definition = FieldDefinition(**data)
    session.add(definition)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise _duplicate_name_error(payload.entity_type, payload.name) from exc
    await session.refresh(definition)

    logger.info(
        "Created custom field definition",
        extra={
            "definition_id": str(definition.id),
            "entity_type": definition.entity_type.value,
            "field_name": definition.name,
        },
    )
    return definition


async def list_definitions(
    session: AsyncSession,
    entity_type: EntityType | None = None,
    *,
    include_inactive: bool = False,
) -> list[FieldDefinition]:
    """Return definitions in form order, active only unless asked otherwise."""

    stmt = select(FieldDefinition)
    if entity_type is not None:
        stmt = stmt.where(FieldDefinition.entity_type == entity_type)
    if not include_inactive:
        stmt = stmt.where(FieldDefinition.is_active.is_(True))
    stmt = stmt.order_by(
        FieldDefinition.entity_type,
        FieldDefinition.display_order,
        FieldDefinition.created_at,
        FieldDefinition.name,
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_definitions_map(
    session: AsyncSession,
    entity_type: EntityType,
    *,
    include_inactive: bool = False,
) -> dict[str, FieldDefinition]:
    """Load the definitions of ``entity_type`` keyed by field name.

    Host validation passes ``include_inactive=True`` so that values sent for a
    retired field are reported as inactive rather than unknown.
    """

    definitions = await list_definitions(
        session, entity_type, include_inactive=include_inactive
    )
    return {definition.name: definition for definition in definitions}


async def get_definition(
    session: AsyncSession, definition_id: uuid.UUID
) -> FieldDefinition:
    definition = await session.get(FieldDefinition, definition_id)
    if definition is None:
        raise NotFoundError(f"Custom field definition with ID '{definition_id}' not found")
    return definition


async def update_definition(
    session: AsyncSession,
    definition_id: uuid.UUID,
    payload: FieldDefinitionUpdate,
) -> FieldDefinition:
    """Apply a partial update to a definition.

    Renames are checked for collisions like creation. The field type may only
    change while no values are stored for the definition.
    """

    definition = await get_definition(session, definition_id)
    updates: dict[str, Any] = payload.model_dump(exclude_unset=True)
    for key in NON_NULLABLE_UPDATES:
        if key in updates and updates[key] is None:
            updates.pop(key)

    new_name = updates.get("name")
    if new_name is not None and new_name != definition.name:
        clash = await _find_by_name(session, definition.entity_type, new_name)
        if clash is not None and clash.id != definition.id:
            raise _duplicate_name_error(definition.entity_type, new_name)

    field_type: FieldType = updates.get("field_type", definition.field_type)
    if field_type != definition.field_type:
        if await count_values(session, definition.id):
            raise ConflictError(
                "Field type cannot change while values are stored for this field",
                code="FIELD_IN_USE",
            )
        if field_type not in SELECT_FIELD_TYPES and "select_options" not in updates:
            updates["select_options"] = None

    select_options = updates.get("select_options", definition.select_options)
    validation_rules = updates.get("validation_rules", definition.validation_rules)
    default_value = updates.get("default_value", definition.default_value)
    _ensure_consistent(
        field_type,
        select_options=select_options,
        validation_rules=validation_rules,
        default_value=default_value,
    )
    if "validation_rules" in updates or "field_type" in updates:
        updates["validation_rules"] = normalize_validation_rules(field_type, validation_rules)

    for key, value in updates.items():
        setattr(definition, key, value)

    try:
        await session.flush()
    except IntegrityError as exc:
        raise _duplicate_name_error(definition.entity_type, definition.name) from exc
    await session.refresh(definition)

    logger.info(
        "Updated custom field definition",
        extra={"definition_id": str(definition.id), "changed": sorted(updates)},
    )
    return definition


async def deactivate_definition(
    session: AsyncSession, definition_id: uuid.UUID
) -> FieldDefinition:
    """Soft delete: hide the definition while keeping its stored values."""

    definition = await get_definition(session, definition_id)
    definition.is_active = False
    await session.flush()
    await session.refresh(definition)
    logger.info(
        "Deactivated custom field definition",
        extra={"definition_id": str(definition.id)},
    )
    return definition


async def hard_delete_definition(session: AsyncSession, definition_id: uuid.UUID) -> None:
    """Physically remove a definition; its values go through the FK cascade."""

    result = await session.execute(
        delete(FieldDefinition).where(FieldDefinition.id == definition_id)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Custom field definition with ID '{definition_id}' not found")
    logger.warning(
        "Hard deleted custom field definition",
        extra={"definition_id": str(definition_id)},
    )


async def reorder_definitions(
    session: AsyncSession,
    entity_type: EntityType,
    orders: Sequence[FieldOrder],
) -> list[FieldDefinition]:
    """Apply new display orders; ids of other entity types are ignored."""

    for order in orders:
        await session.execute(
            update(FieldDefinition)
            .where(
                FieldDefinition.id == order.id,
                FieldDefinition.entity_type == entity_type,
            )
            .values(display_order=order.display_order)
        )
    await session.flush()
    logger.info(
        "Reordered custom field definitions",
        extra={"entity_type": entity_type.value, "count": len(orders)},
    )
    definitions = await list_definitions(session, entity_type)
    for definition in definitions:
        await session.refresh(definition)
    return definitions


async def count_values(session: AsyncSession, definition_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count(FieldValue.id)).where(
            FieldValue.field_definition_id == definition_id
        )
    )
    return int(result.scalar_one())


async def _find_by_name(
    session: AsyncSession, entity_type: EntityType, name: str
) -> FieldDefinition | None:
    result = await session.execute(
        select(FieldDefinition).where(
            FieldDefinition.entity_type == entity_type,
            FieldDefinition.name == name,
        )
    )
    return result.scalar_one_or_none()


def _ensure_consistent(
    field_type: FieldType,
    *,
    select_options: list[str] | None,
    validation_rules: dict[str, Any] | None,
    default_value: Any,
) -> None:
    problems = definition_problems(
        field_type,
        select_options=select_options,
        validation_rules=validation_rules,
        default_value=default_value,
    )
    if problems:
        raise CustomFieldValidationError(problems)


def _duplicate_name_error(entity_type: EntityType, name: str) -> ConflictError:
    return ConflictError(
        f"Custom field with name '{name}' already exists for entity type '{entity_type.value}'"
    )
