"""
Physical Inventory Service
Handles the count document workflow: draft, submission, approval and posting
"""
from typing import Dict, List, Optional, Tuple
from datetime import date, datetime
import math
import random
import time

from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, func, asc, desc

from stockrecon.core.config import settings
from stockrecon.core.exceptions import (
    ValidationError, InvalidStateError, NotFoundError, ConflictError
)
from stockrecon.core.logging import get_logger
from stockrecon.core.security import Actor, log_user_action
from stockrecon.models.master import (
    Store, Product, Account, Currency, AdjustmentReason, FinancialPeriod
)
from stockrecon.models.stock import StockTransaction
from stockrecon.models.inventory import (
    PhysicalInventory, PhysicalInventoryLine,
    STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED, STATUS_RETURNED,
    DOCUMENT_STATUSES
)
from stockrecon.services.numeric import (
    sanitize_amount, sanitize_rate, sanitize_stored_rate, format_rate, round_money
)
from stockrecon.services.valuation import calculate_line_valuation, summarize_valuations
from stockrecon.services.stock_mutation import StockMutationService
from stockrecon.services.ledger_posting import (
    LedgerPostingService, PostingContext, VarianceAccounts
)

logger = get_logger("business")

EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_RETURNED)
VARIANCE_STATUSES = (STATUS_SUBMITTED, STATUS_APPROVED)

REFERENCE_TYPE = "Physical Inventory"

# Header attribute -> label used in error messages
POSTING_ACCOUNT_FIELDS = (
    ("inventory_in_account_id", "inventory in account"),
    ("inventory_in_corresponding_account_id", "inventory in corresponding account"),
    ("inventory_out_account_id", "inventory out account"),
    ("inventory_out_corresponding_account_id", "inventory out corresponding account"),
)

HEADER_FIELDS = (
    "store_id", "currency_id", "notes",
    "inventory_in_account_id", "inventory_in_corresponding_account_id",
    "inventory_out_account_id", "inventory_out_corresponding_account_id",
    "adjustment_in_reason_id", "adjustment_out_reason_id",
)

SORTABLE_FIELDS = {
    "created_at": PhysicalInventory.created_at,
    "updated_at": PhysicalInventory.updated_at,
    "inventory_date": PhysicalInventory.inventory_date,
    "submitted_at": PhysicalInventory.submitted_at,
    "approved_at": PhysicalInventory.approved_at,
    "reference_number": PhysicalInventory.reference_number,
    "total_value": PhysicalInventory.total_value,
}


def parse_optional_date(value) -> Optional[date]:
    """Accept a date, datetime or ISO string; anything unparseable is None"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def generate_reference_number(prefix: Optional[str] = None) -> str:
    """
    Human readable count reference, e.g. PI-1718000000000-4821

    Collisions are tolerated; references are not unique keys.
    """
    prefix = prefix or settings.REFERENCE_PREFIX
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"


class PhysicalInventoryService:
    """
    Physical inventory reconciliation workflow

    draft -> submitted -> approved | rejected | returned_for_correction,
    with returned documents editable and resubmittable. Approval is the
    only transition that touches stock and the ledger, and it does so in
    a single transaction.
    """

    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor
        self.tenant_id = actor.tenant_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, inventory_id: int) -> PhysicalInventory:
        document = self.db.query(PhysicalInventory).filter(
            and_(
                PhysicalInventory.id == inventory_id,
                PhysicalInventory.tenant_id == self.tenant_id
            )
        ).first()
        if not document:
            raise NotFoundError(f"Physical inventory {inventory_id} not found", "id")
        return document

    def list(
        self,
        status: Optional[str] = None,
        store_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Dict:
        """
        List count documents with filters and pagination

        Returns dict with items, total, page, page_size and total_pages.
        """
        query = self.db.query(PhysicalInventory).filter(
            PhysicalInventory.tenant_id == self.tenant_id
        )

        if status and status != "all":
            if status not in DOCUMENT_STATUSES:
                raise ValidationError(f"Unknown status '{status}'", "status")
            query = query.filter(PhysicalInventory.status == status)
        if store_id:
            query = query.filter(PhysicalInventory.store_id == store_id)
        if start_date:
            query = query.filter(PhysicalInventory.inventory_date >= start_date)
        if end_date:
            query = query.filter(PhysicalInventory.inventory_date <= end_date)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    PhysicalInventory.reference_number.ilike(pattern),
                    PhysicalInventory.notes.ilike(pattern)
                )
            )

        sort_column = SORTABLE_FIELDS.get(sort_by, PhysicalInventory.created_at)
        ordering = asc if str(sort_order).lower() == "asc" else desc
        query = query.order_by(ordering(sort_column), ordering(PhysicalInventory.id))

        page = max(1, page or 1)
        page_size = min(max(1, page_size or settings.DEFAULT_PAGE_SIZE), settings.MAX_PAGE_SIZE)

        total = query.count()
        items = query.offset((page - 1) * page_size).limit(page_size).all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }

    def get_stats(self) -> Dict[str, int]:
        """Document counts by status"""
        rows = self.db.query(
            PhysicalInventory.status,
            func.count(PhysicalInventory.id)
        ).filter(
            PhysicalInventory.tenant_id == self.tenant_id
        ).group_by(PhysicalInventory.status).all()

        stats = {status: 0 for status in DOCUMENT_STATUSES}
        for status, count in rows:
            stats[status] = count
        stats["total"] = sum(count for _, count in rows)
        return stats

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    def create_draft(self, data: Dict) -> PhysicalInventory:
        """Create a draft count document with its lines"""
        try:
            self._get_store(data.get("store_id"))
            if data.get("currency_id"):
                self._get_currency(data["currency_id"])

            header_rate = sanitize_rate(data.get("exchange_rate"))
            document = PhysicalInventory(
                tenant_id=self.tenant_id,
                reference_number=generate_reference_number(),
                inventory_date=parse_optional_date(data.get("inventory_date")) or date.today(),
                status=STATUS_DRAFT,
                exchange_rate=format_rate(header_rate),
                created_by=self.actor.actor_id,
                updated_by=self.actor.actor_id
            )
            for field in HEADER_FIELDS:
                if field in data:
                    setattr(document, field, data[field])
            self._validate_reasons(document)

            self._replace_lines(document, data.get("items") or [], header_rate)
            self.db.add(document)
            self.db.flush()

            log_user_action(
                db=self.db,
                actor=self.actor,
                action="CREATE",
                table="physical_inventories",
                key=str(document.id),
                new_values={
                    "reference_number": document.reference_number,
                    "total_items": document.total_items,
                    "total_value": document.total_value
                },
                module="STOCK"
            )
            self.db.commit()

            logger.info(
                f"Physical inventory {document.reference_number} drafted "
                f"with {document.total_items} lines by {self.actor.actor_id}"
            )
            return document

        except Exception:
            self.db.rollback()
            raise

    def update(self, inventory_id: int, data: Dict) -> PhysicalInventory:
        """Replace header fields and the full line set of an editable document"""
        try:
            document = self.get_by_id(inventory_id)
            if document.status not in EDITABLE_STATUSES:
                raise InvalidStateError(
                    f"Physical inventory in status '{document.status}' cannot be edited", "status"
                )

            if "store_id" in data:
                self._get_store(data["store_id"])
            if data.get("currency_id"):
                self._get_currency(data["currency_id"])

            for field in HEADER_FIELDS:
                if field in data:
                    setattr(document, field, data[field])
            self._validate_reasons(document)
            if data.get("inventory_date"):
                document.inventory_date = parse_optional_date(data["inventory_date"]) or document.inventory_date
            if "exchange_rate" in data:
                document.exchange_rate = format_rate(sanitize_rate(data["exchange_rate"]))

            header_rate = sanitize_rate(document.exchange_rate)
            if "items" in data:
                self._replace_lines(document, data.get("items") or [], header_rate)
            document.updated_by = self.actor.actor_id
            document.updated_at = datetime.utcnow()

            log_user_action(
                db=self.db,
                actor=self.actor,
                action="UPDATE",
                table="physical_inventories",
                key=str(document.id),
                new_values={"total_items": document.total_items, "total_value": document.total_value},
                module="STOCK"
            )
            self.db.commit()

            logger.info(f"Physical inventory {document.reference_number} updated by {self.actor.actor_id}")
            return document

        except Exception:
            self.db.rollback()
            raise

    def delete(self, inventory_id: int) -> bool:
        """Delete a draft document"""
        try:
            document = self.get_by_id(inventory_id)
            if document.status != STATUS_DRAFT:
                raise InvalidStateError("Only draft physical inventories can be deleted", "status")

            reference = document.reference_number
            self.db.delete(document)
            log_user_action(
                db=self.db,
                actor=self.actor,
                action="DELETE",
                table="physical_inventories",
                key=str(inventory_id),
                old_values={"reference_number": reference},
                module="STOCK"
            )
            self.db.commit()

            logger.info(f"Physical inventory {reference} deleted by {self.actor.actor_id}")
            return True

        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, inventory_id: int) -> PhysicalInventory:
        try:
            document = self.get_by_id(inventory_id)
            if document.status not in EDITABLE_STATUSES:
                raise InvalidStateError(
                    f"Physical inventory in status '{document.status}' cannot be submitted", "status"
                )
            if not document.lines:
                raise ValidationError("Physical inventory has no items", "items")
            self._resolve_accounts(document)

            self._stamp_transition(document, STATUS_SUBMITTED, "submitted")
            self._audit(document, "SUBMIT")
            self.db.commit()

            logger.info(f"Physical inventory {document.reference_number} submitted by {self.actor.actor_id}")
            return document

        except Exception:
            self.db.rollback()
            raise

    def approve(self, inventory_id: int, notes: Optional[str] = None) -> PhysicalInventory:
        """
        Approve a submitted count and post it

        Every line is revalued against the live stock quantity, the stock
        record and its sub-ledgers are overwritten with the count, a stock
        transaction is written, and non-zero variances are posted to the
        ledger. Any failure rolls back the whole approval.
        """
        document = self.get_by_id(inventory_id)
        self._heal_stored_rates(document)

        try:
            if document.status != STATUS_SUBMITTED:
                raise InvalidStateError(
                    f"Physical inventory in status '{document.status}' cannot be approved", "status"
                )
            accounts = self._resolve_accounts(document)
            system_currency = self._default_currency()
            period = self._active_period()

            locked = self.db.query(PhysicalInventory).filter(
                and_(
                    PhysicalInventory.id == inventory_id,
                    PhysicalInventory.tenant_id == self.tenant_id
                )
            ).with_for_update().populate_existing().one()
            if locked.status != STATUS_SUBMITTED:
                raise ConflictError(
                    f"Physical inventory {locked.reference_number} changed to '{locked.status}' "
                    f"during approval", "status"
                )

            posting_groups = self._process_lines(locked, accounts, system_currency, period)

            self._stamp_transition(locked, STATUS_APPROVED, "approved")
            locked.approval_notes = notes
            self._audit(locked, "APPROVE", {"posting_groups": posting_groups})
            self.db.commit()

            logger.info(
                f"Physical inventory {locked.reference_number} approved by {self.actor.actor_id}: "
                f"{len(locked.lines)} lines, {len(posting_groups)} postings"
            )
            return locked

        except Exception as e:
            self.db.rollback()
            logger.error(f"Approval of physical inventory {inventory_id} rolled back: {e}")
            raise

    def reject(self, inventory_id: int, reason: str) -> PhysicalInventory:
        return self._close_submitted(inventory_id, reason, STATUS_REJECTED)

    def return_for_correction(self, inventory_id: int, reason: str) -> PhysicalInventory:
        return self._close_submitted(inventory_id, reason, STATUS_RETURNED)

    def accept_variance(self, inventory_id: int, data: Optional[Dict] = None) -> PhysicalInventory:
        """
        Record accepted variance totals

        Values not supplied are taken from the document's line delta values.
        Status is unchanged and nothing is posted.
        """
        data = data or {}
        try:
            document = self.get_by_id(inventory_id)
            if document.status not in VARIANCE_STATUSES:
                raise InvalidStateError(
                    f"Variance cannot be accepted for a physical inventory in status '{document.status}'",
                    "status"
                )

            positive = sum(max(sanitize_amount(line.delta_value), 0.0) for line in document.lines)
            negative = sum(min(sanitize_amount(line.delta_value), 0.0) for line in document.lines)

            def pick(field: str, fallback: float) -> float:
                value = data.get(field)
                return round_money(fallback if value is None else sanitize_amount(value, field=field))

            document.total_delta_value = pick("total_delta_value", positive + negative)
            document.positive_delta_value = pick("positive_delta_value", positive)
            document.negative_delta_value = pick("negative_delta_value", negative)
            document.variance_notes = data.get("notes")
            document.variance_accepted_by = self.actor.actor_id
            document.variance_accepted_at = datetime.utcnow()

            self._audit(document, "ACCEPT_VARIANCE", {
                "total_delta_value": document.total_delta_value,
                "positive_delta_value": document.positive_delta_value,
                "negative_delta_value": document.negative_delta_value
            })
            self.db.commit()

            logger.info(f"Variance accepted on physical inventory {document.reference_number}")
            return document

        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close_submitted(self, inventory_id: int, reason: str, status: str) -> PhysicalInventory:
        try:
            document = self.get_by_id(inventory_id)
            if document.status != STATUS_SUBMITTED:
                raise InvalidStateError(
                    f"Physical inventory in status '{document.status}' cannot be {status.replace('_', ' ')}",
                    "status"
                )
            if not reason or not str(reason).strip():
                raise ValidationError("A reason is required", "reason")

            reason = str(reason).strip()
            if status == STATUS_REJECTED:
                self._stamp_transition(document, status, "rejected")
                document.rejection_reason = reason
            else:
                self._stamp_transition(document, status, "returned")
                document.return_reason = reason

            self._audit(document, "REJECT" if status == STATUS_REJECTED else "RETURN", {"reason": reason})
            self.db.commit()

            logger.info(f"Physical inventory {document.reference_number} {status} by {self.actor.actor_id}")
            return document

        except Exception:
            self.db.rollback()
            raise

    def _process_lines(
        self,
        document: PhysicalInventory,
        accounts: VarianceAccounts,
        system_currency: Currency,
        period: FinancialPeriod
    ) -> List[str]:
        mutation = StockMutationService(self.db, self.actor)
        ledger = LedgerPostingService(self.db, self.actor)
        header_rate = sanitize_rate(document.exchange_rate)
        currency_id = document.currency_id or system_currency.id

        valuations = []
        posting_groups = []
        for line in document.lines:
            product = line.product
            rate = sanitize_rate(line.exchange_rate, header_rate)
            live_quantity = mutation.live_quantity(line.product_id, document.store_id)

            valuation = calculate_line_valuation(
                live_quantity,
                line.counted_quantity,
                line.unit_cost,
                line.unit_average_cost,
                rate
            )
            valuations.append(valuation)

            line.current_quantity = live_quantity
            for field, value in valuation.as_persisted().items():
                setattr(line, field, value)

            unit_cost = sanitize_amount(line.unit_cost, field="unit_cost")
            mutation.apply_count(
                product,
                document.store_id,
                valuation.new_stock,
                unit_cost=unit_cost,
                serial_numbers=line.serial_numbers,
                batch_number=line.batch_number,
                expiry_date=line.expiry_date,
                currency_id=currency_id,
                system_currency_id=system_currency.id,
                exchange_rate=rate
            )

            self._record_stock_transaction(
                document, line, valuation, rate, currency_id, system_currency.id, period.id
            )

            context = PostingContext(
                reference_number=document.reference_number,
                transaction_date=document.inventory_date,
                exchange_rate=rate,
                financial_period_id=period.id,
                currency_id=currency_id,
                system_currency_id=system_currency.id
            )
            group_id = ledger.post_variance(
                valuation.delta_quantity, valuation.delta_value, accounts, context, product.name
            )
            if group_id:
                posting_groups.append(group_id)

        summary = summarize_valuations(valuations)
        document.total_items = summary.total_items
        document.total_value = summary.total_value
        return posting_groups

    def _record_stock_transaction(
        self,
        document: PhysicalInventory,
        line: PhysicalInventoryLine,
        valuation,
        rate: float,
        currency_id: int,
        system_currency_id: int,
        financial_period_id: int
    ) -> StockTransaction:
        unit_cost = sanitize_amount(line.unit_average_cost, field="unit_average_cost")
        if valuation.delta_quantity > 0:
            note = f"Physical inventory adjustment: Gain of {valuation.delta_quantity:g} units"
        elif valuation.delta_quantity < 0:
            note = f"Physical inventory adjustment: Loss of {-valuation.delta_quantity:g} units"
        else:
            note = "Physical inventory adjustment: No change"

        transaction = StockTransaction(
            tenant_id=self.tenant_id,
            financial_period_id=financial_period_id,
            product_id=line.product_id,
            store_id=document.store_id,
            transaction_date=datetime.utcnow(),
            reference_number=document.reference_number,
            reference_type=REFERENCE_TYPE,
            reference_id=document.id,
            quantity_in=valuation.adjustment_in_quantity,
            quantity_out=valuation.adjustment_out_quantity,
            unit_cost=unit_cost,
            exchange_rate=rate,
            equivalent_amount=round_money(unit_cost * rate),
            currency_id=currency_id,
            system_currency_id=system_currency_id,
            serial_numbers=", ".join(line.serial_numbers) if line.serial_numbers else None,
            expiry_date=line.expiry_date,
            notes=note,
            created_by=self.actor.actor_id
        )
        self.db.add(transaction)
        return transaction

    def _heal_stored_rates(self, document: PhysicalInventory) -> bool:
        """Rewrite malformed stored rates with their sanitized value"""
        healed = False
        header_rate, dirty = sanitize_stored_rate(document.exchange_rate)
        if dirty:
            logger.warning(
                f"Corrected stored exchange rate {document.exchange_rate!r} -> {header_rate} "
                f"on physical inventory {document.id}"
            )
            document.exchange_rate = format_rate(header_rate)
            healed = True

        for line in document.lines:
            line_rate, dirty = sanitize_stored_rate(line.exchange_rate, header_rate)
            if dirty:
                logger.warning(
                    f"Corrected stored exchange rate {line.exchange_rate!r} -> {line_rate} "
                    f"on physical inventory line {line.id}"
                )
                line.exchange_rate = format_rate(line_rate)
                healed = True

        if healed:
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        return healed

    def _replace_lines(self, document: PhysicalInventory, items: List[Dict], header_rate: float):
        """Delete-then-recreate the line set and recompute header totals"""
        built: List[Tuple[PhysicalInventoryLine, object]] = [
            self._build_line(item, header_rate) for item in items
        ]
        document.lines.clear()
        for line, _ in built:
            document.lines.append(line)

        summary = summarize_valuations(valuation for _, valuation in built)
        document.total_items = summary.total_items
        document.total_value = summary.total_value

    def _build_line(self, item: Dict, header_rate: float):
        product = self._get_product(item.get("product_id"))

        unit_cost = item.get("unit_cost") or 0
        unit_average_cost = item.get("unit_average_cost")
        if unit_average_cost is None:
            unit_average_cost = unit_cost
        rate = sanitize_rate(item.get("exchange_rate"), header_rate)

        valuation = calculate_line_valuation(
            item.get("current_quantity") or 0,
            item.get("counted_quantity") or 0,
            unit_cost,
            unit_average_cost,
            rate
        )

        serial_numbers = [
            str(serial).strip() for serial in (item.get("serial_numbers") or []) if str(serial).strip()
        ]
        for field in ("adjustment_in_reason_id", "adjustment_out_reason_id"):
            if item.get(field):
                self._get_reason(item[field], field)

        line = PhysicalInventoryLine(
            tenant_id=self.tenant_id,
            product_id=product.id,
            current_quantity=sanitize_amount(item.get("current_quantity"), field="current_quantity"),
            counted_quantity=valuation.new_stock,
            unit_cost=sanitize_amount(unit_cost, field="unit_cost"),
            unit_average_cost=sanitize_amount(unit_average_cost, field="unit_average_cost"),
            exchange_rate=format_rate(rate),
            batch_number=item.get("batch_number") or None,
            expiry_date=parse_optional_date(item.get("expiry_date")),
            serial_numbers=serial_numbers,
            adjustment_in_reason_id=item.get("adjustment_in_reason_id"),
            adjustment_out_reason_id=item.get("adjustment_out_reason_id"),
            notes=item.get("notes"),
            **valuation.as_persisted()
        )
        return line, valuation

    def _resolve_accounts(self, document: PhysicalInventory) -> VarianceAccounts:
        """All four posting accounts must be set and resolve to live accounts"""
        missing = [label for field, label in POSTING_ACCOUNT_FIELDS if not getattr(document, field)]
        if missing:
            raise ValidationError(f"Posting accounts not set: {', '.join(missing)}", "accounts")

        resolved = []
        for field, label in POSTING_ACCOUNT_FIELDS:
            account_id = getattr(document, field)
            account = self.db.query(Account).filter(
                and_(
                    Account.id == account_id,
                    Account.tenant_id == self.tenant_id,
                    Account.deleted_at.is_(None)
                )
            ).first()
            if not account:
                raise NotFoundError(f"The {label} ({account_id}) does not exist or was deleted", field)
            resolved.append(account)

        return VarianceAccounts(
            inbound=resolved[0],
            inbound_offset=resolved[1],
            outbound=resolved[2],
            outbound_offset=resolved[3]
        )

    def _default_currency(self) -> Currency:
        currency = self.db.query(Currency).filter(
            and_(Currency.tenant_id == self.tenant_id, Currency.is_default.is_(True))
        ).first()
        if not currency:
            raise NotFoundError("No default currency configured", "currency_id")
        return currency

    def _active_period(self) -> FinancialPeriod:
        period = self.db.query(FinancialPeriod).filter(
            and_(FinancialPeriod.tenant_id == self.tenant_id, FinancialPeriod.is_active.is_(True))
        ).first()
        if not period:
            raise ValidationError("No active financial period", "financial_period_id")
        return period

    def _get_store(self, store_id) -> Store:
        if not store_id:
            raise ValidationError("Store is required", "store_id")
        store = self.db.query(Store).filter(
            and_(Store.id == store_id, Store.tenant_id == self.tenant_id)
        ).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found", "store_id")
        return store

    def _get_product(self, product_id) -> Product:
        if not product_id:
            raise ValidationError("Product is required on every item", "product_id")
        product = self.db.query(Product).filter(
            and_(Product.id == product_id, Product.tenant_id == self.tenant_id)
        ).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found", "product_id")
        return product

    def _get_currency(self, currency_id) -> Currency:
        currency = self.db.query(Currency).filter(
            and_(Currency.id == currency_id, Currency.tenant_id == self.tenant_id)
        ).first()
        if not currency:
            raise NotFoundError(f"Currency {currency_id} not found", "currency_id")
        return currency

    def _get_reason(self, reason_id, field: str) -> AdjustmentReason:
        reason = self.db.query(AdjustmentReason).filter(
            and_(AdjustmentReason.id == reason_id, AdjustmentReason.tenant_id == self.tenant_id)
        ).first()
        if not reason:
            raise NotFoundError(f"Adjustment reason {reason_id} not found", field)
        return reason

    def _validate_reasons(self, document: PhysicalInventory):
        for field in ("adjustment_in_reason_id", "adjustment_out_reason_id"):
            if getattr(document, field):
                self._get_reason(getattr(document, field), field)

    def _stamp_transition(self, document: PhysicalInventory, status: str, stamp: str):
        now = datetime.utcnow()
        document.status = status
        setattr(document, f"{stamp}_by", self.actor.actor_id)
        setattr(document, f"{stamp}_at", now)
        document.updated_by = self.actor.actor_id
        document.updated_at = now

    def _audit(self, document: PhysicalInventory, action: str, extra: Optional[Dict] = None):
        new_values = {"status": document.status, "reference_number": document.reference_number}
        if extra:
            new_values.update(extra)
        log_user_action(
            db=self.db,
            actor=self.actor,
            action=action,
            table="physical_inventories",
            key=str(document.id),
            new_values=new_values,
            module="STOCK"
        )
