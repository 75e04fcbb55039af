"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from timekeeper.api.v1.endpoints import attendance, audit, auth, health

api_router = APIRouter()

# Auth (login, refresh, accounts)
api_router.include_router(auth.router)

# Clock session, breaks, history, admin backfill
api_router.include_router(attendance.router)

# Audit trail
api_router.include_router(audit.router)

# Health
api_router.include_router(health.router)
