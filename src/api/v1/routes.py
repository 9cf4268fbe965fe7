"""
API v1 routes.

Aggregates the verification and report endpoints of the trust pipeline API.
Handlers are plain functions: the engine and stores block, so FastAPI runs
them in its threadpool.
"""

from fastapi import APIRouter

from src.api.v1 import reports, verification

router = APIRouter(tags=["v1"])
router.include_router(verification.router)
router.include_router(reports.router)
