"""Admin routes for managing custom field definitions."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.api.v1.common import commit_or_conflict, data_response
from mssp.core.db import get_session
from mssp.core.security import Principal, Role, get_principal, require_role
from mssp.models import EntityType
from mssp.schemas import (
    FieldDefinitionCreate,
    FieldDefinitionRead,
    FieldDefinitionUpdate,
    FieldOrder,
)
from mssp.services import field_definitions

router = APIRouter(prefix="/admin/custom-field-definitions", tags=["admin", "custom-fields"])

DUPLICATE_NAME_MESSAGE = "Custom field name already exists for this entity type"


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_field_definition(
    payload: FieldDefinitionCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, FieldDefinitionRead]:
    """Create a custom field definition."""

    require_role(principal, Role.ADMIN)
    definition = await field_definitions.create_definition(session, payload)
    await commit_or_conflict(session, DUPLICATE_NAME_MESSAGE)
    return data_response(FieldDefinitionRead.model_validate(definition))


@router.get("")
async def list_field_definitions(
    entity_type: EntityType | None = Query(None, alias="entityType"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[FieldDefinitionRead]]:
    """List definitions, optionally for a single entity type."""

    require_role(principal, Role.ADMIN)
    definitions = await field_definitions.list_definitions(
        session, entity_type, include_inactive=include_inactive
    )
    return data_response([FieldDefinitionRead.model_validate(item) for item in definitions])


@router.patch("/reorder/{entity_type}")
async def reorder_field_definitions(
    entity_type: EntityType,
    orders: list[FieldOrder],
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[FieldDefinitionRead]]:
    """Apply new display orders to the definitions of one entity type."""

    require_role(principal, Role.ADMIN)
    definitions = await field_definitions.reorder_definitions(session, entity_type, orders)
    await session.commit()
    return data_response([FieldDefinitionRead.model_validate(item) for item in definitions])


@router.get("/{definition_id}")
async def retrieve_field_definition(
    definition_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, FieldDefinitionRead]:
    require_role(principal, Role.ADMIN)
    definition = await field_definitions.get_definition(session, definition_id)
    return data_response(FieldDefinitionRead.model_validate(definition))


@router.patch("/{definition_id}")
async def update_field_definition(
    definition_id: uuid.UUID,
    payload: FieldDefinitionUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, FieldDefinitionRead]:
    """Partially update a definition."""

    require_role(principal, Role.ADMIN)
    definition = await field_definitions.update_definition(session, definition_id, payload)
    await commit_or_conflict(session, DUPLICATE_NAME_MESSAGE)
    return data_response(FieldDefinitionRead.model_validate(definition))


@router.delete("/{definition_id}")
async def deactivate_field_definition(
    definition_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, FieldDefinitionRead]:
    """Soft delete a definition; stored values are kept."""

    require_role(principal, Role.ADMIN)
    definition = await field_definitions.deactivate_definition(session, definition_id)
    await session.commit()
    return data_response(FieldDefinitionRead.model_validate(definition))


@router.delete("/{definition_id}/hard")
async def hard_delete_field_definition(
    definition_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, bool]]:
    """Permanently remove a definition."""

    require_role(principal, Role.ADMIN)
    await field_definitions.hard_delete_definition(session, definition_id)
    await session.commit()
    return data_response({"deleted": True})
