"""Read-only custom field routes used to render host entity forms."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.api.v1.common import data_response
from mssp.core.db import get_session
from mssp.core.security import Principal, get_principal
from mssp.models import EntityType
from mssp.schemas import FieldDefinitionRead
from mssp.services.field_definitions import list_definitions

router = APIRouter(prefix="/custom-field-definitions", tags=["custom-fields"])


@router.get("")
async def list_active_field_definitions(
    entity_type: EntityType = Query(..., alias="entityType"),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[FieldDefinitionRead]]:
    """Return the active definitions of one entity type in form order."""

    definitions = await list_definitions(session, entity_type)
    return data_response([FieldDefinitionRead.model_validate(item) for item in definitions])
