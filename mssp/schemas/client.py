"""Pydantic schemas for client resources."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mssp.models.client import ClientStatus

CompanyName = Annotated[str, Field(min_length=1, max_length=255)]
ContactName = Annotated[str, Field(min_length=1, max_length=100)]
PhoneNumber = Annotated[
    str, Field(min_length=7, max_length=50, pattern=r"^[+0-9().\- ]+$")
]
Industry = Annotated[str, Field(max_length=100)]


class ClientCustomPayload(BaseModel):
    custom_field_data: dict[str, Any] | None = None


class ClientCreate(ClientCustomPayload):
    company_name: CompanyName
    contact_name: ContactName
    contact_email: EmailStr
    contact_phone: PhoneNumber | None = None
    address: str | None = None
    industry: Industry | None = None
    status: ClientStatus = ClientStatus.PROSPECT


class ClientUpdate(ClientCustomPayload):
    company_name: CompanyName | None = None
    contact_name: ContactName | None = None
    contact_email: EmailStr | None = None
    contact_phone: PhoneNumber | None = None
    address: str | None = None
    industry: Industry | None = None
    status: ClientStatus | None = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_name: str
    contact_name: str
    contact_email: str
    contact_phone: str | None = None
    address: str | None = None
    industry: str | None = None
    status: ClientStatus
    created_at: datetime
    updated_at: datetime
    custom_field_data: dict[str, Any] = Field(default_factory=dict)
