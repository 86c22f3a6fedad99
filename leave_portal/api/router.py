"""
Main API router
"""
from fastapi import APIRouter

from leave_portal.api.v1 import (
    health,
    leaves,
    balances,
    policies,
    approvals,
    accrual,
    notifications,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(accrual.router, prefix="/accrual", tags=["accrual"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
