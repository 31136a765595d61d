# src/hospital_api/db/models.py
"""SQLAlchemy models for the hospital database.

IMPORTANT: All datetime fields store UTC. Use datetime.now(timezone.utc).
Primary keys are 24-character hex object ids (see new_object_id), so every
identifier that reaches a query has passed is_valid_object_id.
"""

from __future__ import annotations

import os
import re
import time
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship

OBJECT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")

OAUTH_PASSWORD_MARKER = "oauth-no-password"

STAFF_ROLES = ("ADMIN", "DOCTOR", "NURSE", "RECEPTIONIST", "PATIENT")
DEFAULT_STAFF_ROLE = "PATIENT"

APPOINTMENT_STATUSES = ("Active", "Canceled", "Completed")


def _utc_now() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    """Generate a 24-hex object id: 4-byte timestamp followed by 8 random bytes."""
    timestamp = int(time.time()).to_bytes(4, "big")
    return (timestamp + os.urandom(8)).hex()


def is_valid_object_id(value: object) -> bool:
    """Return True if value is a well-formed 24-hex object id string."""
    return isinstance(value, str) and OBJECT_ID_PATTERN.fullmatch(value) is not None


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=new_object_id)
    username = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)
    two_fa_enabled = Column(Boolean, default=False)
    two_fa_secret = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now)

    def to_dict(self) -> dict:
        """Public representation; password and 2FA secret are never included."""
        return {
            "_id": self.id,
            "username": self.username,
            "email": self.email,
            "twoFAEnabled": bool(self.two_fa_enabled),
        }


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(24), primary_key=True, default=new_object_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=DEFAULT_STAFF_ROLE)
    created_at = Column(DateTime(timezone=True), default=_utc_now)

    appointments = relationship(
        "Appointment", back_populates="staff", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_staff_role", role),)

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(24), primary_key=True, default=new_object_id)
    patient_name = Column(String(100), nullable=False)
    staff_id = Column(String(24), ForeignKey("staff.id"), nullable=False)
    date = Column(String, nullable=False)  # ISO-8601 as submitted
    time = Column(String(5), nullable=False)  # HH:MM, 24-hour
    reason = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="Active")
    created_at = Column(DateTime(timezone=True), default=_utc_now)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)

    staff = relationship("Staff", back_populates="appointments")

    __table_args__ = (
        Index("ix_appointments_staff_id", staff_id),
        Index("ix_appointments_status", status),
    )

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "patientName": self.patient_name,
            "staffId": self.staff_id,
            "date": self.date,
            "time": self.time,
            "reason": self.reason,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
