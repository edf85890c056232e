"""Database models package for the MSSP client management backend."""

from .base import Base
from .client import Client, ClientStatus
from .field import EntityType, FieldDefinition, FieldType, FieldValue

__all__ = [
    "Base",
    "Client",
    "ClientStatus",
    "EntityType",
    "FieldDefinition",
    "FieldType",
    "FieldValue",
]
