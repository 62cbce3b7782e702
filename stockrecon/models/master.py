"""
Master Data Models
Stores, products, chart of accounts, currencies and periods consumed by the engine
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, DateTime, Numeric, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from stockrecon.core.database import Base
from datetime import datetime


class Store(Base):
    """Stock holding location"""
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True, doc="Owning tenant")
    code = Column(String(20), nullable=False, default='', doc="Store code")
    name = Column(String(100), nullable=False, doc="Store name")
    is_active = Column(Boolean, default=True)


class Product(Base):
    """Stock item"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    code = Column(String(30), nullable=False, default='', doc="Product code")
    name = Column(String(200), nullable=False, doc="Product description")
    track_serial_number = Column(Boolean, default=False, doc="Serial number tracked")
    average_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0, doc="Average cost")
    is_active = Column(Boolean, default=True)


class AccountType(Base):
    """Account classification carrying the normal balance side"""
    __tablename__ = "account_types"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    code = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    nature = Column(String(10), nullable=False, default='debit', doc="debit or credit")

    accounts = relationship("Account", back_populates="account_type")


class Account(Base):
    """Chart of accounts entry"""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    code = Column(String(20), nullable=False)
    name = Column(String(150), nullable=False)
    account_type_id = Column(Integer, ForeignKey("account_types.id"))
    is_active = Column(Boolean, default=True)
    deleted_at = Column(DateTime, nullable=True, doc="Soft delete stamp")

    account_type = relationship("AccountType", back_populates="accounts")


class Currency(Base):
    """Transaction currency; exactly one per tenant is the default"""
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    code = Column(String(3), nullable=False)
    name = Column(String(50), default='')
    symbol = Column(String(5), default='')
    is_default = Column(Boolean, default=False)


class AdjustmentReason(Base):
    """Reason code attached to stock adjustments"""
    __tablename__ = "adjustment_reasons"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    code = Column(String(20), default='')
    name = Column(String(100), nullable=False)
    direction = Column(String(3), default='in', doc="in or out")


class FinancialPeriod(Base):
    """Financial year / period; one active period per tenant"""
    __tablename__ = "financial_periods"
    __table_args__ = (
        Index("ix_financial_periods_tenant_active", "tenant_id", "is_active"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    name = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
