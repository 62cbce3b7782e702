"""
Stock Mutation Service
Applies physical counts to stock records and the serial / lot sub-ledgers
"""
from typing import Dict, Iterable, List, Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_

from stockrecon.models.master import Product
from stockrecon.models.stock import StockRecord, SerializedUnit, ExpiryLot
from stockrecon.services.numeric import sanitize_amount
from stockrecon.core.security import Actor
from stockrecon.core.logging import get_logger

logger = get_logger("business")

UNIT_STATUS_ACTIVE = "active"
UNIT_STATUS_SOLD = "sold"


def allocate_evenly(total: float, discriminators: Iterable) -> Dict[str, float]:
    """
    Split a counted quantity evenly across serial numbers

    Blank entries are dropped and duplicates collapse to their first
    occurrence. Returns an ordered mapping of discriminator to quantity.
    """
    keys = []
    for value in discriminators or []:
        if value is None:
            continue
        key = str(value).strip()
        if key and key not in keys:
            keys.append(key)

    if not keys:
        return {}

    share = total / len(keys)
    return {key: share for key in keys}


def apply_quantity_change(record, new_quantity: float, actor_id: Optional[str] = None) -> float:
    """
    Move a sub-ledger row to a new quantity and roll its running totals

    Quantities never go below zero; a row at zero is marked sold.
    Returns the signed change applied.
    """
    previous = sanitize_amount(record.current_quantity, field="current_quantity")
    target = max(0.0, new_quantity)
    change = target - previous

    record.current_quantity = target
    record.total_quantity_adjusted = (record.total_quantity_adjusted or 0.0) + change
    if change < 0:
        record.total_quantity_sold = (record.total_quantity_sold or 0.0) - change
    elif change > 0:
        record.total_quantity_received = (record.total_quantity_received or 0.0) + change
    record.status = UNIT_STATUS_SOLD if target <= 0 else UNIT_STATUS_ACTIVE
    if actor_id:
        record.updated_by = actor_id
    return change


class StockMutationService:
    """
    Stock record mutation for approved counts

    Every lookup is row-locked and scoped by the actor's tenant. Nothing
    here commits; the caller owns the transaction.
    """

    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor
        self.tenant_id = actor.tenant_id

    def lock_stock_record(self, product_id: int, store_id: int) -> Optional[StockRecord]:
        """Fetch the stock record for update, if one exists"""
        return self.db.query(StockRecord).filter(
            and_(
                StockRecord.tenant_id == self.tenant_id,
                StockRecord.product_id == product_id,
                StockRecord.store_id == store_id
            )
        ).with_for_update().first()

    def live_quantity(self, product_id: int, store_id: int) -> float:
        """Current authoritative quantity; zero when no record exists yet"""
        record = self.lock_stock_record(product_id, store_id)
        if record is None:
            return 0.0
        return sanitize_amount(record.quantity, field="quantity")

    def apply_count(
        self,
        product: Product,
        store_id: int,
        counted_quantity: float,
        unit_cost: float = 0.0,
        serial_numbers: Optional[List[str]] = None,
        batch_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        currency_id: Optional[int] = None,
        system_currency_id: Optional[int] = None,
        exchange_rate: float = 1.0
    ) -> StockRecord:
        """
        Overwrite stock with the physical count

        Creates the stock record on first reference and always stamps
        last_updated, even when the count matches.
        """
        record = self.lock_stock_record(product.id, store_id)
        if record is None:
            record = StockRecord(
                tenant_id=self.tenant_id,
                product_id=product.id,
                store_id=store_id,
                quantity=0.0,
                average_cost=unit_cost
            )
            self.db.add(record)

        record.quantity = counted_quantity
        record.last_updated = datetime.utcnow()
        self.db.flush()

        tracking = dict(
            unit_cost=unit_cost,
            currency_id=currency_id,
            system_currency_id=system_currency_id,
            exchange_rate=exchange_rate
        )

        if product.track_serial_number and serial_numbers:
            self.apply_serial_allocation(product.id, store_id, counted_quantity, serial_numbers, **tracking)

        if expiry_date:
            self.apply_lot_count(product.id, store_id, counted_quantity, batch_number, expiry_date, **tracking)

        return record

    def apply_serial_allocation(
        self,
        product_id: int,
        store_id: int,
        counted_quantity: float,
        serial_numbers: List[str],
        **tracking
    ) -> List[SerializedUnit]:
        """Distribute the count across the supplied serial numbers"""
        touched = []
        for serial_number, quantity in allocate_evenly(counted_quantity, serial_numbers).items():
            unit = self.db.query(SerializedUnit).filter(
                and_(
                    SerializedUnit.tenant_id == self.tenant_id,
                    SerializedUnit.product_id == product_id,
                    SerializedUnit.store_id == store_id,
                    SerializedUnit.serial_number == serial_number
                )
            ).with_for_update().first()

            if unit is None:
                if quantity <= 0:
                    continue
                unit = SerializedUnit(
                    tenant_id=self.tenant_id,
                    product_id=product_id,
                    store_id=store_id,
                    serial_number=serial_number,
                    current_quantity=quantity,
                    total_quantity_received=quantity,
                    total_quantity_sold=0.0,
                    total_quantity_adjusted=quantity,
                    status=UNIT_STATUS_ACTIVE,
                    created_by=self.actor.actor_id,
                    updated_by=self.actor.actor_id,
                    **tracking
                )
                self.db.add(unit)
            else:
                apply_quantity_change(unit, quantity, self.actor.actor_id)

            touched.append(unit)
            self.db.flush()

        logger.debug(f"Allocated {counted_quantity} across {len(touched)} serial units for product {product_id}")
        return touched

    def apply_lot_count(
        self,
        product_id: int,
        store_id: int,
        counted_quantity: float,
        batch_number: Optional[str],
        expiry_date: date,
        **tracking
    ) -> Optional[ExpiryLot]:
        """Create or update the lot keyed by batch and expiry day"""
        if isinstance(expiry_date, datetime):
            expiry_date = expiry_date.date()

        batch_filter = (
            ExpiryLot.batch_number.is_(None) if not batch_number
            else ExpiryLot.batch_number == batch_number
        )
        lot = self.db.query(ExpiryLot).filter(
            and_(
                ExpiryLot.tenant_id == self.tenant_id,
                ExpiryLot.product_id == product_id,
                ExpiryLot.store_id == store_id,
                batch_filter,
                ExpiryLot.expiry_date == expiry_date
            )
        ).with_for_update().first()

        days_until_expiry = (expiry_date - date.today()).days

        if lot is None:
            if counted_quantity <= 0:
                return None
            lot = ExpiryLot(
                tenant_id=self.tenant_id,
                product_id=product_id,
                store_id=store_id,
                batch_number=batch_number or None,
                expiry_date=expiry_date,
                current_quantity=counted_quantity,
                total_quantity_received=counted_quantity,
                total_quantity_sold=0.0,
                total_quantity_adjusted=counted_quantity,
                status=UNIT_STATUS_ACTIVE,
                created_by=self.actor.actor_id,
                updated_by=self.actor.actor_id,
                **tracking
            )
            self.db.add(lot)
        else:
            apply_quantity_change(lot, counted_quantity, self.actor.actor_id)

        lot.days_until_expiry = days_until_expiry
        lot.is_expired = days_until_expiry < 0
        self.db.flush()
        return lot
