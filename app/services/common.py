"""Shared service helpers: id coercion, tenant-scoped lookups, list queries and money."""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def get_or_404(
    db: Session,
    model: type[T],
    entity_id,
    detail: str | None = None,
    tenant_id=None,
) -> T:
    """Load ``model`` by primary key, optionally requiring it to belong to ``tenant_id``.

    Malformed ids and rows owned by another tenant are reported as missing.
    """
    detail = detail or f"{model.__name__} not found"
    try:
        key = coerce_uuid(entity_id)
        owner = coerce_uuid(tenant_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=detail) from exc
    entity = db.get(model, key)
    if not entity or (owner is not None and entity.tenant_id != owner):
        raise HTTPException(status_code=404, detail=detail)
    return entity


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    return query.order_by(column.desc() if order_dir == "desc" else column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize a balance or price to two places, rounding half up."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
