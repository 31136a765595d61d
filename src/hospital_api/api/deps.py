# src/hospital_api/api/deps.py
"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Path, Request

from ..config import AppConfig
from ..errors import InvalidIdentifierError
from ..oauth.provider import IdentityProvider
from ..security.identifiers import sanitize_object_id


def get_config(request: Request) -> AppConfig:
    """Get the configuration the application was created with."""
    return request.app.state.config


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def appointment_id_param(
    appointment_id: Annotated[str, Path(alias="id")],
) -> str:
    """Sanitized ``{id}`` path parameter of the appointment routes."""
    sanitized = sanitize_object_id(appointment_id)
    if sanitized is None:
        raise InvalidIdentifierError("appointment", appointment_id)
    return sanitized


def staff_id_param(
    staff_id: Annotated[str, Path(alias="staffId")],
) -> str:
    """Sanitized ``{staffId}`` path parameter."""
    sanitized = sanitize_object_id(staff_id)
    if sanitized is None:
        raise InvalidIdentifierError("staff", staff_id)
    return sanitized


ConfigDep = Annotated[AppConfig, Depends(get_config)]
ProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]
AppointmentId = Annotated[str, Depends(appointment_id_param)]
StaffId = Annotated[str, Depends(staff_id_param)]
