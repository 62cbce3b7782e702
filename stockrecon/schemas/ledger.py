"""General Ledger Schemas"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime, date
from enum import Enum


class AccountNature(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class LedgerEntryResponse(BaseModel):
    id: int
    financial_period_id: Optional[int] = None
    transaction_date: date
    system_date: Optional[datetime] = None
    reference_number: Optional[str] = None
    transaction_type: str
    posting_group_id: str
    reversal_of_group_id: Optional[str] = None
    account_id: int
    account_code: Optional[str] = None
    account_name: Optional[str] = None
    account_type_code: Optional[str] = None
    account_type_name: Optional[str] = None
    account_nature: AccountNature
    amount: float
    equivalent_amount: float
    exchange_rate: Optional[float] = None
    currency_id: Optional[int] = None
    system_currency_id: Optional[int] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PostingGroupResponse(BaseModel):
    posting_group_id: str
    debit_total: float
    credit_total: float
    balanced: bool
    entries: List[LedgerEntryResponse]


class ReversalRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Recorded on the reversal entries")
    reference_number: Optional[str] = Field(None, description="Defaults to the original reference")


class ReversalResponse(BaseModel):
    original_group_id: str
    reversal_group_id: str
