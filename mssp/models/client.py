"""Client model definition."""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SQLEnum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from mssp.models.base import Base


class ClientStatus(str, Enum):
    """Lifecycle status of an MSSP client."""

    PROSPECT = "prospect"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    RENEWED = "renewed"


class Client(Base):
    """A customer organisation served by the MSSP.

    Custom field values live in ``custom_field_values`` keyed by the client id.
    """

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    company_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    contact_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text())
    industry: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[ClientStatus] = mapped_column(
        SQLEnum(ClientStatus, name="client_status"),
        nullable=False,
        default=ClientStatus.PROSPECT,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
