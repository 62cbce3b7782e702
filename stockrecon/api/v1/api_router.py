"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from stockrecon.api.v1 import physical_inventory, ledger

api_router = APIRouter()

# Physical inventory workflow
api_router.include_router(
    physical_inventory.router, prefix="/physical-inventories", tags=["physical-inventory"]
)

# General ledger
api_router.include_router(ledger.router, prefix="/ledger", tags=["general-ledger"])
