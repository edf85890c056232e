"""Common helpers for API routes."""
from __future__ import annotations

from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mssp.core.errors import ConflictError

T = TypeVar("T")


def data_response(payload: T) -> dict[str, T]:
    """Wrap a payload in the standard data envelope."""

    return {"data": payload}


async def commit_or_conflict(session: AsyncSession, message: str) -> None:
    """Commit the session, reporting uniqueness races as conflicts."""

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(message) from exc
