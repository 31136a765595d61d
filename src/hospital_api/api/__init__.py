# src/hospital_api/api/__init__.py
"""REST API for hospital_api."""

from .app import create_app

__all__ = ["create_app"]
