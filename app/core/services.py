"""Helpers shared by the domain service modules."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import bad_request, conflict, not_found
from app.core.logging import get_logger

logger = get_logger("services")

ModelT = TypeVar("ModelT")


def plain_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace enum members with their values before they reach the ORM."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def model_to_dict(obj: Any) -> Dict[str, Any]:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


async def get_or_404(db: AsyncSession, model: Type[ModelT], obj_id: int, entity: str) -> ModelT:
    obj = await db.get(model, obj_id)
    if obj is None:
        raise not_found(entity)
    return obj


def apply_updates(obj: Any, payload: BaseModel, exclude: Optional[set] = None) -> Dict[str, Any]:
    """
    Copy the fields explicitly sent in payload onto obj and stamp updated_at.
    Raises 400 when the body carries nothing to update, or sets a
    non-nullable column to null.
    """
    changes = plain_values(payload.model_dump(exclude_unset=True, exclude=exclude))
    if not changes:
        raise bad_request("No valid fields to update")
    columns = obj.__table__.columns
    for key, value in changes.items():
        if value is None and key in columns and not columns[key].nullable:
            raise bad_request(f"{key} cannot be null")
    for key, value in changes.items():
        setattr(obj, key, value)
    if hasattr(obj, "updated_at"):
        obj.updated_at = datetime.utcnow()
    return changes


async def commit_or_conflict(db: AsyncSession, message: str = "Duplicate entry. Record already exists.") -> None:
    """Commit; a unique-constraint race that slipped past the pre-checks becomes a 409."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Integrity error on commit: %s", e.orig)
        raise conflict(message) from e
