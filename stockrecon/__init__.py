"""
Stock Reconciliation
Physical inventory reconciliation and double-entry ledger posting engine
"""

__version__ = "1.0.0"
