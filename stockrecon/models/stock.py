"""
Stock Models
Authoritative stock-on-hand, serial and lot sub-ledgers, and the stock audit trail
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Boolean, Date, DateTime, Text,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from stockrecon.core.database import Base
from datetime import datetime


class StockRecord(Base):
    """
    Stock Record - per store quantity on hand

    One row per (tenant, product, store), created lazily on first reference.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "store_id", name="uq_stock_records_tenant_product_store"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)

    quantity = Column(Numeric(15, 3, asdecimal=False), nullable=False, default=0.0, doc="Quantity on hand")
    min_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0, doc="Minimum quantity")
    max_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0, doc="Maximum quantity")
    reorder_level = Column(Numeric(15, 3, asdecimal=False), default=0.0, doc="Reorder point")
    average_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0, doc="Rolling average cost")
    last_updated = Column(DateTime, default=datetime.utcnow, doc="Last quantity change")

    product = relationship("Product")


class SerializedUnit(Base):
    """Serial number sub-ledger of a stock record"""
    __tablename__ = "serialized_units"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "product_id", "store_id", "serial_number",
            name="uq_serialized_units_tenant_product_store_serial"
        ),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    serial_number = Column(String(100), nullable=False)

    current_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_received = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_sold = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_adjusted = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    unit_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0)
    status = Column(String(10), nullable=False, default='active', doc="active or sold")

    currency_id = Column(Integer, ForeignKey("currencies.id"))
    system_currency_id = Column(Integer, ForeignKey("currencies.id"))
    exchange_rate = Column(Numeric(18, 8, asdecimal=False), default=1.0)

    created_by = Column(String(36))
    updated_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ExpiryLot(Base):
    """Batch / expiry sub-ledger of a stock record"""
    __tablename__ = "expiry_lots"
    __table_args__ = (
        Index("ix_expiry_lots_lookup", "tenant_id", "product_id", "store_id", "batch_number", "expiry_date"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    batch_number = Column(String(100), nullable=True)
    expiry_date = Column(Date, nullable=False)

    current_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_received = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_sold = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_quantity_adjusted = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    unit_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0)
    status = Column(String(10), nullable=False, default='active', doc="active or sold")
    days_until_expiry = Column(Integer, doc="Days to expiry at last write")
    is_expired = Column(Boolean, default=False)

    currency_id = Column(Integer, ForeignKey("currencies.id"))
    system_currency_id = Column(Integer, ForeignKey("currencies.id"))
    exchange_rate = Column(Numeric(18, 8, asdecimal=False), default=1.0)

    created_by = Column(String(36))
    updated_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StockTransaction(Base):
    """Append-only stock audit trail, one row per processed count line"""
    __tablename__ = "stock_transactions"
    __table_args__ = (
        Index("ix_stock_transactions_reference", "tenant_id", "reference_number"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    financial_period_id = Column(Integer, ForeignKey("financial_periods.id"))
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)

    transaction_date = Column(DateTime, default=datetime.utcnow)
    reference_number = Column(String(50))
    reference_type = Column(String(50), doc="Source document type")
    reference_id = Column(Integer, doc="Source document id")

    quantity_in = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    quantity_out = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    unit_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0)
    exchange_rate = Column(Numeric(18, 8, asdecimal=False), default=1.0)
    equivalent_amount = Column(Numeric(18, 2, asdecimal=False), default=0.0)
    currency_id = Column(Integer, ForeignKey("currencies.id"))
    system_currency_id = Column(Integer, ForeignKey("currencies.id"))

    serial_numbers = Column(Text)
    expiry_date = Column(Date)
    notes = Column(Text)

    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
