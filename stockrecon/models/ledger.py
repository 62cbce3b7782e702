"""
General Ledger Models
Immutable double-entry ledger rows grouped by posting group
"""
from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, Text, ForeignKey, Index
from stockrecon.core.database import Base
from datetime import datetime


NATURE_DEBIT = "debit"
NATURE_CREDIT = "credit"


class LedgerEntry(Base):
    """
    Ledger Entry

    Append-only. Every posting group balances on equivalent amount; a
    reversal is a new posting group, never an update.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_posting_group", "posting_group_id"),
        Index("ix_ledger_entries_reversal_of", "reversal_of_group_id"),
        Index("ix_ledger_entries_tenant_reference", "tenant_id", "reference_number"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    financial_period_id = Column(Integer, ForeignKey("financial_periods.id"))

    transaction_date = Column(Date, nullable=False, doc="Business date of the event")
    system_date = Column(DateTime, default=datetime.utcnow, doc="When the row was written")
    reference_number = Column(String(50))
    transaction_type = Column(String(30), nullable=False, doc="PHYSICAL_INVENTORY, REVERSAL, ...")
    posting_group_id = Column(String(36), nullable=False)
    reversal_of_group_id = Column(String(36), nullable=True, doc="Posting group this row reverses")

    # Account snapshot
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    account_code = Column(String(20))
    account_name = Column(String(150))
    account_type_code = Column(String(20))
    account_type_name = Column(String(100))
    account_nature = Column(String(10), nullable=False, doc="debit or credit")

    # Amounts
    amount = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0.0, doc="Transaction currency")
    equivalent_amount = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0.0, doc="Default currency")
    exchange_rate = Column(Numeric(18, 8, asdecimal=False), default=1.0)
    currency_id = Column(Integer, ForeignKey("currencies.id"))
    system_currency_id = Column(Integer, ForeignKey("currencies.id"))

    description = Column(Text)
    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
