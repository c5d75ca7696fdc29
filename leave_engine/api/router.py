"""
Main API router
"""
from fastapi import APIRouter

from leave_engine.api.v1 import (
    health,
    version,
    employees,
    policies,
    leaves,
    balances,
    encashments,
    year_end,
    audit,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(encashments.router, prefix="/encashments", tags=["encashments"])
api_router.include_router(year_end.router, prefix="/year-end", tags=["year-end"])
api_router.include_router(audit.router, prefix="/audit", tags=["audit"])
