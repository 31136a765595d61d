# src/hospital_api/api/routers/__init__.py
"""API routers for hospital_api."""

from .appointments import router as appointments_router
from .mfa import router as mfa_router
from .oauth import router as oauth_router
from .staff import router as staff_router

__all__ = ["appointments_router", "mfa_router", "oauth_router", "staff_router"]
