"""Pydantic schemas for the MSSP client management backend."""

from .client import ClientCreate, ClientRead, ClientUpdate
from .field import (
    FieldDefinitionCreate,
    FieldDefinitionRead,
    FieldDefinitionUpdate,
    FieldOrder,
)

__all__ = [
    "ClientCreate",
    "ClientRead",
    "ClientUpdate",
    "FieldDefinitionCreate",
    "FieldDefinitionRead",
    "FieldDefinitionUpdate",
    "FieldOrder",
]
