"""
hrms_api.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) validating the DB and the session store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.api.deps import db_session, session_store_dep
from hrms_api.auth.sessions import SessionStore

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    # Liveness: process is up and serving HTTP.
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    store: SessionStore = Depends(session_store_dep),
) -> dict[str, str]:
    # Readiness: every protected route needs both the DB and the session store.
    await session.execute(text("SELECT 1"))
    await store.ping()
    return {"status": "ready"}


# --- Module Notes -----------------------------------------------------------
# Kubernetes typically uses /healthz for liveness and /readyz for readiness gating.
