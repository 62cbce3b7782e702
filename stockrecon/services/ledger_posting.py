"""
Ledger Posting Service
Balanced double-entry postings and posting-group reversals
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from datetime import date
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import and_

from stockrecon.models.master import Account
from stockrecon.models.ledger import LedgerEntry, NATURE_DEBIT, NATURE_CREDIT
from stockrecon.services.numeric import round_money, sanitize_amount, sanitize_rate
from stockrecon.core.exceptions import ValidationError, NotFoundError, ConflictError
from stockrecon.core.security import Actor, log_user_action
from stockrecon.core.logging import get_logger

logger = get_logger("business")

TRANSACTION_TYPE_PHYSICAL_INVENTORY = "PHYSICAL_INVENTORY"
TRANSACTION_TYPE_REVERSAL = "REVERSAL"


@dataclass
class PostingContext:
    """Header values shared by every entry of one posting"""
    reference_number: str
    transaction_date: date
    exchange_rate: float = 1.0
    financial_period_id: Optional[int] = None
    currency_id: Optional[int] = None
    system_currency_id: Optional[int] = None


@dataclass
class VarianceAccounts:
    """The four accounts a count document posts against"""
    inbound: Account
    inbound_offset: Account
    outbound: Account
    outbound_offset: Account


@dataclass
class GroupTotals:
    """Debit and credit equivalent totals of one posting group"""
    posting_group_id: str
    entry_count: int
    debit_total: float
    credit_total: float

    @property
    def balanced(self) -> bool:
        return self.entry_count > 0 and self.debit_total == self.credit_total


def flip_nature(nature: str) -> str:
    return NATURE_CREDIT if nature == NATURE_DEBIT else NATURE_DEBIT


def totals_for(posting_group_id: str, entries: List[LedgerEntry]) -> GroupTotals:
    """Sum entries per side in Decimal, then round once"""
    debit = Decimal("0")
    credit = Decimal("0")
    for entry in entries:
        value = Decimal(str(entry.equivalent_amount or 0))
        if entry.account_nature == NATURE_DEBIT:
            debit += value
        else:
            credit += value
    return GroupTotals(
        posting_group_id=posting_group_id,
        entry_count=len(entries),
        debit_total=round_money(debit),
        credit_total=round_money(credit),
    )


class LedgerPostingService:
    """
    General ledger posting for inventory variances

    Posting methods only flush; the enclosing workflow commits or rolls
    back. reverse_posting_group commits by default since it is also a
    standalone operation.
    """

    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor
        self.tenant_id = actor.tenant_id

    def post_variance(
        self,
        delta_quantity: float,
        delta_value: float,
        accounts: VarianceAccounts,
        context: PostingContext,
        product_name: str
    ) -> Optional[str]:
        """
        Post a count variance

        Gain debits the inbound account against its offset; loss debits the
        outbound offset against the outbound account. Returns the posting
        group id, or None when there is no variance.
        """
        if delta_quantity == 0:
            return None

        if delta_quantity > 0:
            debit_account, credit_account, kind = accounts.inbound, accounts.inbound_offset, "gain"
        else:
            debit_account, credit_account, kind = accounts.outbound_offset, accounts.outbound, "loss"

        description = f"Physical inventory {kind} - {product_name} ({context.reference_number})"
        return self.post_pair(
            debit_account,
            credit_account,
            abs(delta_value),
            context,
            description,
            TRANSACTION_TYPE_PHYSICAL_INVENTORY
        )

    def post_pair(
        self,
        debit_account: Account,
        credit_account: Account,
        amount: float,
        context: PostingContext,
        description: str,
        transaction_type: str
    ) -> str:
        """Write one debit and one credit for the same amount under a new posting group"""
        rate = sanitize_rate(context.exchange_rate)
        value = sanitize_amount(amount, field="amount")
        transaction_amount = round_money(value)
        equivalent_amount = round_money(value * rate)
        posting_group_id = str(uuid.uuid4())

        entries = [
            self._build_entry(
                account, nature, transaction_amount, equivalent_amount, rate,
                context, description, transaction_type, posting_group_id
            )
            for account, nature in ((debit_account, NATURE_DEBIT), (credit_account, NATURE_CREDIT))
        ]
        self._ensure_balanced(posting_group_id, entries)

        self.db.add_all(entries)
        self.db.flush()
        return posting_group_id

    def get_group_entries(self, posting_group_id: str) -> List[LedgerEntry]:
        return self.db.query(LedgerEntry).filter(
            and_(
                LedgerEntry.tenant_id == self.tenant_id,
                LedgerEntry.posting_group_id == posting_group_id
            )
        ).order_by(LedgerEntry.id).all()

    def get_group_totals(self, posting_group_id: str) -> GroupTotals:
        """Debit/credit equivalent totals for a posting group"""
        entries = self.get_group_entries(posting_group_id)
        if not entries:
            raise NotFoundError(f"Posting group {posting_group_id} not found", "posting_group_id")
        return totals_for(posting_group_id, entries)

    def reverse_posting_group(
        self,
        posting_group_id: str,
        reason: Optional[str] = None,
        reference_number: Optional[str] = None,
        transaction_date: Optional[date] = None,
        commit: bool = True
    ) -> str:
        """
        Reverse a posting group

        Emits a mirror entry per original with the nature flipped and the
        same amounts, under a new posting group. The originals are never
        touched. A group can only be reversed once.

        Returns:
            The new posting group id
        """
        try:
            originals = self.get_group_entries(posting_group_id)
            if not originals:
                raise NotFoundError(f"Posting group {posting_group_id} not found", "posting_group_id")

            already_reversed = self.db.query(LedgerEntry.id).filter(
                and_(
                    LedgerEntry.tenant_id == self.tenant_id,
                    LedgerEntry.reversal_of_group_id == posting_group_id
                )
            ).first()
            if already_reversed:
                raise ConflictError(
                    f"Posting group {posting_group_id} has already been reversed", "posting_group_id"
                )

            reversal_group_id = str(uuid.uuid4())
            reversal_date = transaction_date or date.today()
            mirrors = []
            for original in originals:
                description = f"Reversal: {original.description or ''}".rstrip()
                if reason:
                    description = f"{description} [{reason}]"
                mirrors.append(LedgerEntry(
                    tenant_id=self.tenant_id,
                    financial_period_id=original.financial_period_id,
                    transaction_date=reversal_date,
                    reference_number=reference_number or original.reference_number,
                    transaction_type=TRANSACTION_TYPE_REVERSAL,
                    posting_group_id=reversal_group_id,
                    reversal_of_group_id=posting_group_id,
                    account_id=original.account_id,
                    account_code=original.account_code,
                    account_name=original.account_name,
                    account_type_code=original.account_type_code,
                    account_type_name=original.account_type_name,
                    account_nature=flip_nature(original.account_nature),
                    amount=original.amount,
                    equivalent_amount=original.equivalent_amount,
                    exchange_rate=original.exchange_rate,
                    currency_id=original.currency_id,
                    system_currency_id=original.system_currency_id,
                    description=description,
                    created_by=self.actor.actor_id
                ))

            self._ensure_balanced(reversal_group_id, mirrors)
            self.db.add_all(mirrors)

            log_user_action(
                db=self.db,
                actor=self.actor,
                action="REVERSE",
                table="ledger_entries",
                key=posting_group_id,
                new_values={"reversal_group_id": reversal_group_id, "reason": reason},
                module="GL"
            )

            if commit:
                self.db.commit()
            else:
                self.db.flush()

            logger.info(
                f"Reversed posting group {posting_group_id} as {reversal_group_id} "
                f"({len(mirrors)} entries)"
            )
            return reversal_group_id

        except Exception:
            if commit:
                self.db.rollback()
            raise

    def _build_entry(
        self,
        account: Account,
        nature: str,
        amount: float,
        equivalent_amount: float,
        rate: float,
        context: PostingContext,
        description: str,
        transaction_type: str,
        posting_group_id: str
    ) -> LedgerEntry:
        account_type = account.account_type
        return LedgerEntry(
            tenant_id=self.tenant_id,
            financial_period_id=context.financial_period_id,
            transaction_date=context.transaction_date,
            reference_number=context.reference_number,
            transaction_type=transaction_type,
            posting_group_id=posting_group_id,
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            account_type_code=account_type.code if account_type else None,
            account_type_name=account_type.name if account_type else None,
            account_nature=nature,
            amount=amount,
            equivalent_amount=equivalent_amount,
            exchange_rate=rate,
            currency_id=context.currency_id,
            system_currency_id=context.system_currency_id,
            description=description,
            created_by=self.actor.actor_id
        )

    def _ensure_balanced(self, posting_group_id: str, entries: List[LedgerEntry]):
        totals = totals_for(posting_group_id, entries)
        if not totals.balanced:
            raise ValidationError(
                f"Posting group {posting_group_id} does not balance: "
                f"debit {totals.debit_total} != credit {totals.credit_total}"
            )
