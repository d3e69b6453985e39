"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from accountability.app.api.v1.endpoints import auth, proposals, ledger

router = APIRouter()

router.include_router(auth.router)
router.include_router(proposals.router)
router.include_router(ledger.router)
