"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from modmarket.app.api.v1.endpoints import (
    wallet, allocations, purchases, developer, admin
)

router = APIRouter()

# Buyer endpoints
router.include_router(wallet.router)
router.include_router(allocations.router)
router.include_router(purchases.router)

# Developer endpoints
router.include_router(developer.router)

# Admin endpoints
router.include_router(admin.router)
