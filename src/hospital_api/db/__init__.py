# src/hospital_api/db/__init__.py
"""Database module for hospital_api."""

from .models import (
    Appointment,
    Base,
    Staff,
    User,
    is_valid_object_id,
    new_object_id,
)
from .session import (
    create_session,
    get_session,
    init_db,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "User",
    "Staff",
    "Appointment",
    "new_object_id",
    "is_valid_object_id",
    "init_db",
    "get_session",
    "create_session",
    "reset_engine",
    "session_scope",
]
