"""
Physical Inventory Models
Count document header and count lines
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text, JSON,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship
from stockrecon.core.database import Base
from datetime import datetime


# Count document statuses
STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_RETURNED = "returned_for_correction"

DOCUMENT_STATUSES = (
    STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED, STATUS_RETURNED
)


class PhysicalInventory(Base):
    """
    Physical Inventory - count document header

    The reference number is human readable and deliberately not unique.
    Exchange rate is held as text; legacy rows may carry malformed values.
    """
    __tablename__ = "physical_inventories"
    __table_args__ = (
        Index("ix_physical_inventories_tenant_status", "tenant_id", "status"),
        Index("ix_physical_inventories_reference", "tenant_id", "reference_number"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    reference_number = Column(String(50), nullable=False, doc="Count reference")
    inventory_date = Column(Date, nullable=False, doc="Date of the count")
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    status = Column(String(30), nullable=False, default=STATUS_DRAFT)
    notes = Column(Text)

    # Currency
    currency_id = Column(Integer, ForeignKey("currencies.id"))
    exchange_rate = Column(String(50), default="1.0", doc="Rate to tenant default currency")

    # Posting accounts
    inventory_in_account_id = Column(Integer, ForeignKey("accounts.id"), doc="Inbound variance account")
    inventory_in_corresponding_account_id = Column(Integer, ForeignKey("accounts.id"), doc="Inbound offset account")
    inventory_out_account_id = Column(Integer, ForeignKey("accounts.id"), doc="Outbound variance account")
    inventory_out_corresponding_account_id = Column(Integer, ForeignKey("accounts.id"), doc="Outbound offset account")

    # Adjustment reasons
    adjustment_in_reason_id = Column(Integer, ForeignKey("adjustment_reasons.id"))
    adjustment_out_reason_id = Column(Integer, ForeignKey("adjustment_reasons.id"))

    # Totals
    total_items = Column(Integer, default=0)
    total_value = Column(Numeric(18, 2, asdecimal=False), default=0.0)

    # Accepted variance
    total_delta_value = Column(Numeric(18, 2, asdecimal=False))
    positive_delta_value = Column(Numeric(18, 2, asdecimal=False))
    negative_delta_value = Column(Numeric(18, 2, asdecimal=False))
    variance_notes = Column(Text)
    variance_accepted_by = Column(String(36))
    variance_accepted_at = Column(DateTime)

    # Workflow stamps
    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_by = Column(String(36))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_by = Column(String(36))
    submitted_at = Column(DateTime)
    approved_by = Column(String(36))
    approved_at = Column(DateTime)
    approval_notes = Column(Text)
    rejected_by = Column(String(36))
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)
    returned_by = Column(String(36))
    returned_at = Column(DateTime)
    return_reason = Column(Text)

    # Relationships
    store = relationship("Store")
    currency = relationship("Currency")
    inventory_in_account = relationship("Account", foreign_keys=[inventory_in_account_id])
    inventory_in_corresponding_account = relationship("Account", foreign_keys=[inventory_in_corresponding_account_id])
    inventory_out_account = relationship("Account", foreign_keys=[inventory_out_account_id])
    inventory_out_corresponding_account = relationship("Account", foreign_keys=[inventory_out_corresponding_account_id])
    lines = relationship(
        "PhysicalInventoryLine",
        back_populates="physical_inventory",
        cascade="all, delete-orphan",
        order_by="PhysicalInventoryLine.id"
    )


class PhysicalInventoryLine(Base):
    """Count line - one product counted on a physical inventory"""
    __tablename__ = "physical_inventory_lines"

    id = Column(Integer, primary_key=True)
    physical_inventory_id = Column(
        Integer, ForeignKey("physical_inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id = Column(String(36), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    # Quantities and costs
    current_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0, doc="System quantity snapshot")
    counted_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0, doc="Physical count")
    unit_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0)
    unit_average_cost = Column(Numeric(15, 4, asdecimal=False), default=0.0)
    exchange_rate = Column(String(50), default="1.0")

    # Tracking
    batch_number = Column(String(100))
    expiry_date = Column(Date)
    serial_numbers = Column(JSON, default=list)

    adjustment_in_reason_id = Column(Integer, ForeignKey("adjustment_reasons.id"))
    adjustment_out_reason_id = Column(Integer, ForeignKey("adjustment_reasons.id"))
    notes = Column(Text)

    # Computed valuation
    adjustment_in_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    adjustment_out_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    delta_quantity = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    delta_value = Column(Numeric(18, 2, asdecimal=False), default=0.0)
    new_stock = Column(Numeric(15, 3, asdecimal=False), default=0.0)
    total_value = Column(Numeric(18, 2, asdecimal=False), default=0.0)
    equivalent_amount = Column(Numeric(18, 2, asdecimal=False), default=0.0)

    physical_inventory = relationship("PhysicalInventory", back_populates="lines")
    product = relationship("Product")
