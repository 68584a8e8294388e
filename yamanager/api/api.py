"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from yamanager.api.endpoints import calendar, files, health, settings, users

api_router = APIRouter()

# Users, profiles, policies, decisions
api_router.include_router(users.router)

# Calendar entries
api_router.include_router(calendar.router)

# Default settings per role
api_router.include_router(settings.router)

# XLSX import, PDF export
api_router.include_router(files.router)

# Health
api_router.include_router(health.router)
