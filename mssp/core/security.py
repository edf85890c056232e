"""Caller identification and explicit role checks.

Routes receive a :class:`Principal` through ``Depends(get_principal)`` and call
:func:`require_role` as the first statement of the handler body.
"""
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, Request

from mssp.core.config import Settings, get_settings
from mssp.core.errors import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class Role(str, Enum):
    """Roles available to internal MSSP team members."""

    ADMIN = "admin"
    MANAGER = "manager"
    PROJECT_MANAGER = "project_manager"
    ACCOUNT_MANAGER = "account_manager"
    ENGINEER = "engineer"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request."""

    subject: str
    role: Role

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles


def resolve_token(token: str, settings: Settings) -> Principal | None:
    """Return the principal configured for ``token`` if any."""

    for candidate, role_name in settings.api_tokens.items():
        if not hmac.compare_digest(candidate.encode(), token.encode()):
            continue
        try:
            role = Role(role_name)
        except ValueError:
            logger.warning("API token configured with unknown role", extra={"role": role_name})
            return None
        return Principal(subject=f"token:{candidate[:4]}", role=role)
    return None


async def get_principal(
    request: Request, settings: Settings = Depends(get_settings)
) -> Principal:
    """Resolve the caller from the ``Authorization: Bearer`` header."""

    header = request.headers.get("authorization", "").strip()
    if not header.lower().startswith(BEARER_PREFIX):
        raise AuthenticationError("Bearer token required")

    principal = resolve_token(header[len(BEARER_PREFIX):].strip(), settings)
    if principal is None:
        raise AuthenticationError("Invalid API token")
    return principal


def require_role(principal: Principal, *roles: Role) -> None:
    """Raise :class:`ForbiddenError` unless the principal holds one of ``roles``."""

    if principal.has_role(*roles):
        return
    logger.info(
        "Role check failed",
        extra={"subject": principal.subject, "role": principal.role.value},
    )
    allowed = ", ".join(role.value for role in roles)
    raise ForbiddenError(f"This operation requires one of the roles: {allowed}")
