# src/hospital_api/api/routers/staff.py
"""Staff API endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DBSession

from ...db import Staff, get_session
from ...db.models import STAFF_ROLES
from ...errors import InputValidationError, ResourceNotFoundError
from ..auth import AdminUser, AuthenticatedUser
from ..deps import StaffId

router = APIRouter(prefix="/api/v1/staff", tags=["staff"])


@router.get("")
async def list_staff(
    user: AdminUser,
    db: Annotated[DBSession, Depends(get_session)],
    role: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """List staff members (admins only).

    Args:
        role: Filter by role (e.g., DOCTOR, NURSE)
        limit: Maximum number of records to return
        offset: Number of records to skip
    """
    query = db.query(Staff)

    if role is not None:
        if role not in STAFF_ROLES:
            raise InputValidationError(
                [{"field": "role", "message": f"Invalid role. Must be one of: {', '.join(STAFF_ROLES)}"}]
            )
        query = query.filter(Staff.role == role)

    total = query.count()
    staff = query.order_by(Staff.name).offset(offset).limit(limit).all()

    return {
        "items": [s.to_dict() for s in staff],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/{staffId}")
async def get_staff(
    staff_id: StaffId,
    user: AuthenticatedUser,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    staff = db.get(Staff, staff_id)
    if staff is None:
        raise ResourceNotFoundError("staff", staff_id)
    return staff.to_dict()
