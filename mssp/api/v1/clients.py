"""Clients API routes."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.api.v1.common import commit_or_conflict, data_response
from mssp.core.db import get_session
from mssp.core.errors import ConflictError, NotFoundError
from mssp.core.security import Principal, Role, get_principal, require_role
from mssp.models import Client, ClientStatus, EntityType
from mssp.schemas import ClientCreate, ClientRead, ClientUpdate
from mssp.services.field_definitions import get_definitions_map
from mssp.services.field_validation import validate_custom_field_data
from mssp.services.field_values import (
    delete_values,
    get_values,
    get_values_for_entities,
    save_values,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

DUPLICATE_COMPANY_MESSAGE = "Client with the same company name already exists"


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, ClientRead]:
    """Create a client together with its custom field values."""

    definitions = await get_definitions_map(
        session, EntityType.CLIENT, include_inactive=True
    )
    custom_values = validate_custom_field_data(payload.custom_field_data, definitions)
    await _ensure_company_name_available(session, payload.company_name)

    client = Client(**payload.model_dump(exclude={"custom_field_data"}))
    session.add(client)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError(DUPLICATE_COMPANY_MESSAGE) from exc

    await save_values(session, EntityType.CLIENT, client.id, custom_values)
    await commit_or_conflict(session, DUPLICATE_COMPANY_MESSAGE)
    await session.refresh(client)

    logger.info(
        "Created client",
        extra={"client_id": str(client.id), "subject": principal.subject},
    )
    stored = await get_values(session, EntityType.CLIENT, client.id)
    return data_response(_serialize_client(client, stored))


@router.get("")
async def list_clients(
    keyword: str | None = None,
    client_status: ClientStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[ClientRead]]:
    """List clients with optional filtering and pagination."""

    stmt = select(Client)
    if keyword:
        lowered = f"%{keyword.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Client.company_name).like(lowered),
                func.lower(Client.contact_name).like(lowered),
                func.lower(Client.contact_email).like(lowered),
                func.lower(Client.industry).like(lowered),
            )
        )
    if client_status is not None:
        stmt = stmt.where(Client.status == client_status)

    stmt = stmt.order_by(Client.company_name).offset((page - 1) * size).limit(size)
    result = await session.execute(stmt)
    clients = result.scalars().all()

    custom_values = await get_values_for_entities(
        session, EntityType.CLIENT, [client.id for client in clients]
    )
    payload = [_serialize_client(client, custom_values[client.id]) for client in clients]
    return data_response(payload)


@router.get("/{client_id}")
async def retrieve_client(
    client_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, ClientRead]:
    """Retrieve a single client by identifier."""

    client = await _get_client_or_404(session, client_id)
    stored = await get_values(session, EntityType.CLIENT, client.id)
    return data_response(_serialize_client(client, stored))


@router.put("/{client_id}")
async def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, ClientRead]:
    """Update a client; custom field data is merged with stored values."""

    client = await _get_client_or_404(session, client_id)

    base_updates = payload.model_dump(exclude_unset=True, exclude={"custom_field_data"})
    new_company_name = base_updates.get("company_name")
    if new_company_name is not None and new_company_name != client.company_name:
        await _ensure_company_name_available(session, new_company_name)
    for field, value in base_updates.items():
        if value is None and field in {"company_name", "contact_name", "contact_email", "status"}:
            continue
        setattr(client, field, value)

    if payload.custom_field_data is not None:
        definitions = await get_definitions_map(
            session, EntityType.CLIENT, include_inactive=True
        )
        existing = await get_values(session, EntityType.CLIENT, client.id)
        custom_values = validate_custom_field_data(
            payload.custom_field_data, definitions, existing=existing
        )
        await save_values(session, EntityType.CLIENT, client.id, custom_values)

    await commit_or_conflict(session, DUPLICATE_COMPANY_MESSAGE)
    await session.refresh(client)
    stored = await get_values(session, EntityType.CLIENT, client.id)
    return data_response(_serialize_client(client, stored))


@router.delete("/{client_id}")
async def delete_client(
    client_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, bool]]:
    """Delete a client and every custom field value attached to it."""

    require_role(principal, Role.ADMIN, Role.MANAGER)
    client = await _get_client_or_404(session, client_id)
    await delete_values(session, EntityType.CLIENT, client.id)
    await session.delete(client)
    await session.commit()
    return data_response({"deleted": True})


async def _get_client_or_404(session: AsyncSession, client_id: uuid.UUID) -> Client:
    client = await session.get(Client, client_id)
    if client is None:
        raise NotFoundError("Client not found")
    return client


async def _ensure_company_name_available(session: AsyncSession, company_name: str) -> None:
    result = await session.execute(
        select(Client.id).where(Client.company_name == company_name).limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise ConflictError(
            f"Client with company name '{company_name}' already exists"
        )


def _serialize_client(client: Client, custom_values: dict[str, Any]) -> ClientRead:
    return ClientRead.model_validate(client).model_copy(
        update={"custom_field_data": custom_values}
    )
