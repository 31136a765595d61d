# src/hospital_api/api/routers/appointments.py
"""Appointment API endpoints.

Every identifier and text field passes through the input guard before a
query runs; a request that fails validation never reaches the database.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError
from sqlalchemy.orm import Session as DBSession

from ...db import Appointment, Staff, get_session
from ...db.models import APPOINTMENT_STATUSES
from ...errors import ResourceNotFoundError
from ...security.identifiers import sanitize_object_id
from ...security.text import sanitize_string
from ..deps import AppointmentId, StaffId
from ..rate_limit import require_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/appointments", tags=["appointments"])

TIME_PATTERN = re.compile(r"([01]?[0-9]|2[0-3]):[0-5][0-9]")


class AppointmentPayload(BaseModel):
    """Create/update request body.

    Unknown keys are dropped so operator-shaped keys such as ``$where``
    never reach the model.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    patient_name: str = Field(alias="patientName", min_length=1, max_length=100)
    staff_id: str = Field(alias="staffId")
    date: str
    time: str
    reason: str = Field(min_length=1, max_length=500)
    status: str

    @field_validator("patient_name")
    @classmethod
    def patient_name_is_clean(cls, value: str) -> str:
        if sanitize_string(value) != value:
            raise PydanticCustomError(
                "invalid_characters", "Patient name contains invalid characters"
            )
        return value

    @field_validator("staff_id")
    @classmethod
    def staff_id_is_object_id(cls, value: str) -> str:
        sanitized = sanitize_object_id(value)
        if sanitized is None:
            raise PydanticCustomError("invalid_id", "Invalid staff ID format")
        return sanitized

    @field_validator("date")
    @classmethod
    def date_is_iso8601(cls, value: str) -> str:
        try:
            if value != value.strip():
                raise ValueError(value)
            datetime.fromisoformat(value)
        except ValueError:
            raise PydanticCustomError("invalid_date", "Invalid date format") from None
        return value

    @field_validator("time")
    @classmethod
    def time_is_24_hour(cls, value: str) -> str:
        if not TIME_PATTERN.fullmatch(value):
            raise PydanticCustomError("invalid_time", "Invalid time format (HH:MM)")
        return value

    @field_validator("reason")
    @classmethod
    def reason_is_clean(cls, value: str) -> str:
        if sanitize_string(value) != value:
            raise PydanticCustomError(
                "invalid_characters", "Reason contains invalid characters"
            )
        return value

    @field_validator("status")
    @classmethod
    def status_is_known(cls, value: str) -> str:
        if value not in APPOINTMENT_STATUSES:
            raise PydanticCustomError(
                "invalid_status",
                "Invalid status. Must be Active, Canceled, or Completed",
            )
        return value


def _require_staff(db: DBSession, staff_id: str) -> Staff:
    staff = db.get(Staff, staff_id)
    if staff is None:
        raise ResourceNotFoundError("staff", staff_id)
    return staff


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit("appointments_write"))],
)
async def create_appointment(
    payload: AppointmentPayload,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    """Create an appointment for an existing staff member."""
    _require_staff(db, payload.staff_id)

    appointment = Appointment(
        patient_name=payload.patient_name,
        staff_id=payload.staff_id,
        date=payload.date,
        time=payload.time,
        reason=payload.reason,
        status=payload.status,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    logger.info(f"Created appointment {appointment.id} for staff {payload.staff_id}")
    return appointment.to_dict()


@router.get("")
async def list_appointments(
    db: Annotated[DBSession, Depends(get_session)],
) -> list[dict[str, Any]]:
    """List all appointments, oldest first."""
    appointments = db.query(Appointment).order_by(Appointment.created_at).all()
    return [a.to_dict() for a in appointments]


@router.get("/doctor/{staffId}")
async def list_appointments_for_doctor(
    staff_id: StaffId,
    db: Annotated[DBSession, Depends(get_session)],
) -> list[dict[str, Any]]:
    """List appointments assigned to one staff member."""
    appointments = (
        db.query(Appointment)
        .filter(Appointment.staff_id == staff_id)
        .order_by(Appointment.date, Appointment.time)
        .all()
    )
    return [a.to_dict() for a in appointments]


@router.get("/{id}")
async def get_appointment(
    appointment_id: AppointmentId,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise ResourceNotFoundError("appointment", appointment_id)
    return appointment.to_dict()


@router.put(
    "/{id}",
    dependencies=[Depends(require_rate_limit("appointments_write"))],
)
async def update_appointment(
    appointment_id: AppointmentId,
    payload: AppointmentPayload,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, Any]:
    """Replace an appointment's fields."""
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise ResourceNotFoundError("appointment", appointment_id)

    _require_staff(db, payload.staff_id)

    appointment.patient_name = payload.patient_name
    appointment.staff_id = payload.staff_id
    appointment.date = payload.date
    appointment.time = payload.time
    appointment.reason = payload.reason
    appointment.status = payload.status
    db.commit()
    db.refresh(appointment)

    return appointment.to_dict()


@router.delete(
    "/{id}",
    dependencies=[Depends(require_rate_limit("appointments_write"))],
)
async def delete_appointment(
    appointment_id: AppointmentId,
    db: Annotated[DBSession, Depends(get_session)],
) -> dict[str, str]:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise ResourceNotFoundError("appointment", appointment_id)

    db.delete(appointment)
    db.commit()

    logger.info(f"Deleted appointment {appointment_id}")
    return {"message": "Appointment deleted successfully"}
