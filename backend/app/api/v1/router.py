"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    orders, easyship_orders,
    wallet, admin_wallet,
    accounts, catalog,
    admin_ops,
)

router = APIRouter()

# Orders: charging, status actions, carrier actions
router.include_router(orders.router)
router.include_router(easyship_orders.router)

# Wallet: account holder and admin sides
router.include_router(wallet.router)
router.include_router(admin_wallet.router)

# Master data
router.include_router(accounts.router)
router.include_router(catalog.router)

# Ops: order sync, DLQ
router.include_router(admin_ops.router)
