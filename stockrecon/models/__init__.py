"""
Stock Reconciliation SQLAlchemy Models
"""

# Import all models to ensure they are registered with SQLAlchemy
from .master import Store, Product, AccountType, Account, Currency, AdjustmentReason, FinancialPeriod
from .stock import StockRecord, SerializedUnit, ExpiryLot, StockTransaction
from .inventory import PhysicalInventory, PhysicalInventoryLine
from .ledger import LedgerEntry
from .audit import AuditLog

__all__ = [
    "Store",
    "Product",
    "AccountType",
    "Account",
    "Currency",
    "AdjustmentReason",
    "FinancialPeriod",
    "StockRecord",
    "SerializedUnit",
    "ExpiryLot",
    "StockTransaction",
    "PhysicalInventory",
    "PhysicalInventoryLine",
    "LedgerEntry",
    "AuditLog",
]
