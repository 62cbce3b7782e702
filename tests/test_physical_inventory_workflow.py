"""
Tests for the Physical Inventory Workflow
State machine, live stock revaluation, posting and atomicity
"""

import re
import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import update
from sqlalchemy.orm import Session

from stockrecon.core.exceptions import (
    ValidationError, InvalidStateError, NotFoundError, ConflictError, NumericIntegrityError
)
from stockrecon.models.audit import AuditLog
from stockrecon.models.inventory import PhysicalInventory, PhysicalInventoryLine
from stockrecon.models.ledger import LedgerEntry
from stockrecon.models.master import FinancialPeriod
from stockrecon.models.stock import StockRecord, StockTransaction, SerializedUnit, ExpiryLot
from stockrecon.services.physical_inventory import (
    PhysicalInventoryService, generate_reference_number, parse_optional_date
)


def put_stock(db_session, actor, product, store, quantity, last_updated=None):
    record = StockRecord(
        tenant_id=actor.tenant_id,
        product_id=product.id,
        store_id=store.id,
        quantity=quantity,
        last_updated=last_updated or datetime(2020, 1, 1)
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def service(db_session: Session, actor) -> PhysicalInventoryService:
    return PhysicalInventoryService(db_session, actor)


@pytest.fixture
def submitted(service, draft_payload) -> PhysicalInventory:
    document = service.create_draft(draft_payload())
    return service.submit(document.id)


class TestHelpers:
    """Test reference numbers and date parsing"""

    def test_reference_number_format(self):
        """References carry the prefix, a millisecond stamp and four digits"""
        assert re.match(r"^PI-\d{13}-\d{4}$", generate_reference_number())

    def test_parse_optional_date(self):
        """ISO strings parse, anything unusable is dropped"""
        assert parse_optional_date("2025-03-01") == date(2025, 3, 1)
        assert parse_optional_date("2025-03-01T10:00:00Z") == date(2025, 3, 1)
        assert parse_optional_date(datetime(2025, 3, 1, 9)) == date(2025, 3, 1)
        assert parse_optional_date("") is None
        assert parse_optional_date("not a date") is None
        assert parse_optional_date(None) is None


class TestDraft:
    """Test draft creation and editing"""

    def test_create_draft(self, service, draft_payload, seeded, actor):
        """Draft stores lines with advisory valuations and header totals"""
        document = service.create_draft(draft_payload())

        assert document.id is not None
        assert document.status == "draft"
        assert document.tenant_id == actor.tenant_id
        assert document.created_by == actor.actor_id
        assert re.match(r"^PI-\d{13}-\d{4}$", document.reference_number)
        assert document.total_items == 1
        assert document.total_value == 30

        line = document.lines[0]
        assert line.adjustment_in_quantity == 5
        assert line.delta_value == 10
        assert line.unit_average_cost == 2
        assert line.exchange_rate == "1.0"

    def test_payload_tenant_ignored(self, service, draft_payload, actor):
        """The tenant always comes from the actor"""
        document = service.create_draft(draft_payload(tenant_id="tenant-2"))
        assert document.tenant_id == actor.tenant_id

    def test_unknown_store(self, service, draft_payload):
        """Store must exist for the tenant"""
        with pytest.raises(NotFoundError):
            service.create_draft(draft_payload(store_id=9999))

    def test_other_tenant_store(self, service, draft_payload, seeded):
        """Another tenant's store is not visible"""
        with pytest.raises(NotFoundError):
            service.create_draft(draft_payload(store_id=seeded["foreign_store"].id))

    def test_unknown_product(self, service, draft_payload, db_session):
        """Every line must reference an existing product"""
        with pytest.raises(NotFoundError):
            service.create_draft(draft_payload(items=[{"product_id": 9999, "counted_quantity": 1}]))
        assert db_session.query(PhysicalInventory).count() == 0

    def test_duplicate_reference_numbers_allowed(self, service, draft_payload, db_session):
        """Reference numbers are not unique keys"""
        first = service.create_draft(draft_payload())
        second = service.create_draft(draft_payload())
        second.reference_number = first.reference_number
        db_session.commit()

        matches = db_session.query(PhysicalInventory).filter(
            PhysicalInventory.reference_number == first.reference_number
        ).count()
        assert matches == 2

    def test_invalid_expiry_becomes_none(self, service, draft_payload, seeded):
        """Unparseable expiry dates are dropped rather than rejected"""
        document = service.create_draft(draft_payload(items=[{
            "product_id": seeded["widget"].id,
            "counted_quantity": 3,
            "unit_cost": 1,
            "expiry_date": "31/31/2025",
        }]))
        assert document.lines[0].expiry_date is None

    def test_update_replaces_lines(self, service, draft_payload, seeded, db_session):
        """Update deletes and recreates the full line set"""
        document = service.create_draft(draft_payload())
        updated = service.update(document.id, {
            "notes": "Recount",
            "items": [
                {"product_id": seeded["widget"].id, "current_quantity": 4, "counted_quantity": 4, "unit_cost": 5},
                {"product_id": seeded["scanner"].id, "current_quantity": 0, "counted_quantity": 1, "unit_cost": 100},
            ]
        })

        assert updated.notes == "Recount"
        assert updated.total_items == 2
        assert updated.total_value == 120
        assert [line.counted_quantity for line in updated.lines] == [4, 1]
        assert db_session.query(PhysicalInventoryLine).count() == 2

    def test_update_only_when_editable(self, service, submitted):
        """Submitted documents are locked for editing"""
        with pytest.raises(InvalidStateError):
            service.update(submitted.id, {"notes": "late edit"})

    def test_delete_draft(self, service, draft_payload, db_session):
        """Drafts can be deleted with their lines"""
        document = service.create_draft(draft_payload())

        assert service.delete(document.id) is True
        assert db_session.query(PhysicalInventory).count() == 0
        assert db_session.query(PhysicalInventoryLine).count() == 0

    def test_delete_non_draft_rejected(self, service, submitted):
        """Only drafts can be deleted"""
        with pytest.raises(InvalidStateError):
            service.delete(submitted.id)


class TestSubmit:
    """Test submission validation"""

    def test_submit(self, service, submitted, actor):
        """Submission stamps actor and time"""
        assert submitted.status == "submitted"
        assert submitted.submitted_by == actor.actor_id
        assert submitted.submitted_at is not None

    def test_submit_requires_all_accounts(self, service, draft_payload):
        """All four posting accounts must be set"""
        document = service.create_draft(draft_payload(inventory_out_corresponding_account_id=None))

        with pytest.raises(ValidationError, match="inventory out corresponding account"):
            service.submit(document.id)
        assert service.get_by_id(document.id).status == "draft"

    def test_submit_requires_lines(self, service, draft_payload):
        """An empty count cannot be submitted"""
        document = service.create_draft(draft_payload(items=[]))
        with pytest.raises(ValidationError):
            service.submit(document.id)

    def test_submit_rejects_deleted_account(self, service, draft_payload, seeded, db_session):
        """Soft-deleted accounts do not resolve"""
        seeded["inventory_gain"].deleted_at = datetime.utcnow()
        db_session.commit()

        document = service.create_draft(draft_payload())
        with pytest.raises(NotFoundError):
            service.submit(document.id)

    def test_submit_twice(self, service, submitted):
        """Submitted documents cannot be submitted again"""
        with pytest.raises(InvalidStateError):
            service.submit(submitted.id)


class TestApprove:
    """Test approval posting"""

    def test_gain_posts_balanced_pair(self, service, submitted, seeded, db_session):
        """current=10, counted=15 at cost 2 posts two entries of 10"""
        put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)

        approved = service.approve(submitted.id, notes="Looks right")

        assert approved.status == "approved"
        assert approved.approved_by == service.actor.actor_id
        assert approved.approval_notes == "Looks right"

        entries = db_session.query(LedgerEntry).all()
        assert len(entries) == 2
        assert len({e.posting_group_id for e in entries}) == 1
        assert sorted(e.account_nature for e in entries) == ["credit", "debit"]
        assert all(e.equivalent_amount == 10 for e in entries)
        assert {e.reference_number for e in entries} == {submitted.reference_number}

        record = db_session.query(StockRecord).one()
        assert record.quantity == 15

    def test_recomputes_against_live_stock(self, service, submitted, seeded, db_session):
        """The stale draft snapshot is replaced by the live quantity"""
        # Draft said 10 on hand; stock moved to 18 since
        put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 18)

        approved = service.approve(submitted.id)

        line = approved.lines[0]
        assert line.current_quantity == 18
        assert line.delta_quantity == -3
        assert line.adjustment_out_quantity == 3
        assert line.delta_value == -6

        debit = db_session.query(LedgerEntry).filter(LedgerEntry.account_nature == "debit").one()
        assert debit.account_id == seeded["inventory_loss"].id
        assert debit.equivalent_amount == 6
        assert db_session.query(StockRecord).one().quantity == 15

    def test_missing_stock_record_created(self, service, submitted, db_session):
        """Without a stock record live stock is zero and the record is created"""
        approved = service.approve(submitted.id)

        assert approved.lines[0].current_quantity == 0
        assert approved.lines[0].delta_quantity == 15
        assert db_session.query(StockRecord).one().quantity == 15

    def test_zero_delta_posts_nothing_but_stamps_stock(self, service, draft_payload, seeded, db_session):
        """A matching count writes no ledger entries yet touches the stock record"""
        record = put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 15)
        document = service.create_draft(draft_payload())
        service.submit(document.id)

        service.approve(document.id)

        assert db_session.query(LedgerEntry).count() == 0
        db_session.refresh(record)
        assert record.quantity == 15
        assert record.last_updated > datetime(2020, 1, 1)

    def test_stock_transaction_recorded(self, service, submitted, seeded, db_session):
        """Each processed line leaves a stock audit row"""
        put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)
        service.approve(submitted.id)

        transaction = db_session.query(StockTransaction).one()
        assert transaction.quantity_in == 5
        assert transaction.quantity_out == 0
        assert transaction.reference_type == "Physical Inventory"
        assert transaction.reference_number == submitted.reference_number
        assert transaction.notes == "Physical inventory adjustment: Gain of 5 units"
        assert transaction.financial_period_id == seeded["period"].id
        assert transaction.system_currency_id == seeded["usd"].id

    def test_foreign_currency_equivalent(self, service, draft_payload, seeded, db_session):
        """Ledger equivalents convert at the document rate"""
        document = service.create_draft(draft_payload(currency_id=seeded["eur"].id, exchange_rate="1.5"))
        service.submit(document.id)
        put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)

        service.approve(document.id)

        for entry in db_session.query(LedgerEntry).all():
            assert entry.amount == 10
            assert entry.equivalent_amount == 15
            assert entry.currency_id == seeded["eur"].id
            assert entry.system_currency_id == seeded["usd"].id

    def test_small_rate_survives_approval(self, service, draft_payload, seeded, db_session):
        """A tiny cross rate is stored positionally and left untouched by approval"""
        document = service.create_draft(draft_payload(currency_id=seeded["eur"].id, exchange_rate=0.000063))
        assert document.exchange_rate == "0.000063"
        service.submit(document.id)
        put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)

        approved = service.approve(document.id)

        assert approved.exchange_rate == "0.000063"
        assert approved.lines[0].exchange_rate == "0.000063"
        entries = db_session.query(LedgerEntry).all()
        assert len(entries) == 2
        for entry in entries:
            assert entry.amount == 10
            assert entry.equivalent_amount == 0.0

    def test_serial_and_lot_sub_ledgers(self, service, draft_payload, seeded, db_session):
        """Serial-tracked lines allocate units and expiry lines update lots"""
        expiry = date.today() + timedelta(days=60)
        document = service.create_draft(draft_payload(items=[{
            "product_id": seeded["scanner"].id,
            "current_quantity": 0,
            "counted_quantity": 2,
            "unit_cost": 50,
            "serial_numbers": ["SN-1", "SN-2"],
            "batch_number": "LOT-7",
            "expiry_date": expiry.isoformat(),
        }]))
        service.submit(document.id)

        service.approve(document.id)

        units = db_session.query(SerializedUnit).all()
        assert sorted(u.serial_number for u in units) == ["SN-1", "SN-2"]
        assert all(u.current_quantity == 1 and u.status == "active" for u in units)

        lot = db_session.query(ExpiryLot).one()
        assert lot.batch_number == "LOT-7"
        assert lot.current_quantity == 2
        assert lot.days_until_expiry == 60

        transaction = db_session.query(StockTransaction).one()
        assert transaction.serial_numbers == "SN-1, SN-2"

    def test_heals_malformed_stored_rates(self, service, submitted, db_session):
        """Corrupted stored rates are rewritten with their sanitized value"""
        document = db_session.get(PhysicalInventory, submitted.id)
        document.exchange_rate = "1.0032.5"
        document.lines[0].exchange_rate = "1.0032.5"
        db_session.commit()

        approved = service.approve(submitted.id)

        assert approved.exchange_rate == "1.00325"
        assert approved.lines[0].exchange_rate == "1.00325"

    def test_audit_trail(self, service, submitted, db_session):
        """Each transition is written to the audit log"""
        service.approve(submitted.id)

        actions = [a.audit_action for a in db_session.query(AuditLog).order_by(AuditLog.audit_id).all()]
        assert actions == ["CREATE", "SUBMIT", "APPROVE"]


class TestApproveFailures:
    """Test that failed approvals leave no trace"""

    def test_approve_requires_submitted(self, service, draft_payload, seeded, db_session):
        """Drafts cannot be approved and nothing is mutated"""
        record = put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)
        document = service.create_draft(draft_payload())

        with pytest.raises(ValidationError):
            service.approve(document.id)

        assert service.get_by_id(document.id).status == "draft"
        assert db_session.query(LedgerEntry).count() == 0
        db_session.refresh(record)
        assert record.quantity == 10

    def test_approve_twice(self, service, submitted):
        """Approved documents are terminal"""
        service.approve(submitted.id)
        with pytest.raises(InvalidStateError):
            service.approve(submitted.id)

    def test_account_deleted_after_submission(self, service, draft_payload, seeded, db_session):
        """A posting account removed after submission aborts the whole approval"""
        document = service.create_draft(draft_payload(items=[
            {"product_id": seeded["widget"].id, "current_quantity": 10, "counted_quantity": 15, "unit_cost": 2},
            {"product_id": seeded["scanner"].id, "current_quantity": 3, "counted_quantity": 1, "unit_cost": 9},
        ]))
        service.submit(document.id)

        seeded["inventory_loss"].deleted_at = datetime.utcnow()
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.approve(document.id)

        assert service.get_by_id(document.id).status == "submitted"
        assert db_session.query(StockRecord).count() == 0
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.query(StockTransaction).count() == 0

    def test_failure_on_later_line_rolls_back_earlier_lines(self, service, draft_payload, seeded, db_session):
        """If line two of two fails, line one's stock and postings are undone"""
        record = put_stock(db_session, service.actor, seeded["widget"], seeded["store"], 10)
        document = service.create_draft(draft_payload(items=[
            {"product_id": seeded["widget"].id, "current_quantity": 10, "counted_quantity": 15, "unit_cost": 2},
            {"product_id": seeded["scanner"].id, "current_quantity": 3, "counted_quantity": 1, "unit_cost": 9},
        ]))
        service.submit(document.id)

        # Legacy corruption on the second line only
        bad_line = document.lines[1]
        bad_line.counted_quantity = -4
        db_session.commit()

        with pytest.raises(NumericIntegrityError):
            service.approve(document.id)

        assert service.get_by_id(document.id).status == "submitted"
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.query(StockTransaction).count() == 0
        assert db_session.query(StockRecord).count() == 1
        db_session.refresh(record)
        assert record.quantity == 10
        assert record.last_updated == datetime(2020, 1, 1)

    def test_no_active_period(self, service, submitted, db_session):
        """Approval needs an active financial period"""
        db_session.query(FinancialPeriod).update({FinancialPeriod.is_active: False})
        db_session.commit()

        with pytest.raises(ValidationError, match="financial period"):
            service.approve(submitted.id)
        assert service.get_by_id(submitted.id).status == "submitted"

    def test_status_changed_under_lock(self, service, submitted, db_session, monkeypatch):
        """A concurrent status change detected after locking is a conflict"""
        original_active_period = service._active_period

        def racing_active_period():
            db_session.execute(
                update(PhysicalInventory)
                .where(PhysicalInventory.id == submitted.id)
                .values(status="approved")
            )
            return original_active_period()

        monkeypatch.setattr(service, "_active_period", racing_active_period)

        with pytest.raises(ConflictError):
            service.approve(submitted.id)

        assert db_session.query(LedgerEntry).count() == 0
        assert service.get_by_id(submitted.id).status == "submitted"


class TestRejectReturn:
    """Test reject, return and resubmission"""

    def test_reject(self, service, submitted, actor, db_session):
        """Rejection records the reason and mutates nothing"""
        rejected = service.reject(submitted.id, "Counted wrong store")

        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "Counted wrong store"
        assert rejected.rejected_by == actor.actor_id
        assert db_session.query(StockRecord).count() == 0
        assert db_session.query(LedgerEntry).count() == 0

    def test_reject_requires_reason(self, service, submitted):
        """A blank reason is refused"""
        with pytest.raises(ValidationError):
            service.reject(submitted.id, "   ")

    def test_reject_only_submitted(self, service, draft_payload):
        """Drafts cannot be rejected"""
        document = service.create_draft(draft_payload())
        with pytest.raises(InvalidStateError):
            service.reject(document.id, "no")

    def test_return_edit_and_resubmit(self, service, submitted, seeded):
        """Returned documents can be corrected and submitted again"""
        returned = service.return_for_correction(submitted.id, "Recount aisle 4")
        assert returned.status == "returned_for_correction"
        assert returned.return_reason == "Recount aisle 4"

        service.update(submitted.id, {"items": [
            {"product_id": seeded["widget"].id, "current_quantity": 10, "counted_quantity": 12, "unit_cost": 2},
        ]})
        resubmitted = service.submit(submitted.id)

        assert resubmitted.status == "submitted"
        assert resubmitted.lines[0].counted_quantity == 12

    def test_rejected_is_terminal(self, service, submitted):
        """Rejected documents cannot be resubmitted or approved"""
        service.reject(submitted.id, "Duplicate count")
        with pytest.raises(InvalidStateError):
            service.submit(submitted.id)
        with pytest.raises(InvalidStateError):
            service.approve(submitted.id)


class TestAcceptVariance:
    """Test variance acceptance bookkeeping"""

    def test_defaults_from_lines(self, service, draft_payload, seeded):
        """Omitted totals are taken from the line delta values"""
        document = service.create_draft(draft_payload(items=[
            {"product_id": seeded["widget"].id, "current_quantity": 10, "counted_quantity": 15, "unit_cost": 2},
            {"product_id": seeded["scanner"].id, "current_quantity": 10, "counted_quantity": 7, "unit_cost": 5},
        ]))
        service.submit(document.id)

        accepted = service.accept_variance(document.id, {"notes": "Within tolerance"})

        assert accepted.status == "submitted"
        assert accepted.positive_delta_value == 10
        assert accepted.negative_delta_value == -15
        assert accepted.total_delta_value == -5
        assert accepted.variance_notes == "Within tolerance"
        assert accepted.variance_accepted_by == service.actor.actor_id

    def test_explicit_values(self, service, submitted):
        """Supplied totals are stored as given"""
        service.approve(submitted.id)
        accepted = service.accept_variance(submitted.id, {
            "total_delta_value": 12.5, "positive_delta_value": 12.5, "negative_delta_value": 0
        })
        assert accepted.status == "approved"
        assert accepted.total_delta_value == 12.5

    def test_not_allowed_on_draft(self, service, draft_payload):
        """Variance is accepted only after submission"""
        document = service.create_draft(draft_payload())
        with pytest.raises(InvalidStateError):
            service.accept_variance(document.id, {})


class TestQueries:
    """Test listing and statistics"""

    def test_stats(self, service, draft_payload):
        """Counts are grouped by status"""
        service.create_draft(draft_payload())
        second = service.create_draft(draft_payload())
        service.submit(second.id)
        third = service.create_draft(draft_payload())
        service.submit(third.id)
        service.reject(third.id, "wrong")

        stats = service.get_stats()
        assert stats["total"] == 3
        assert stats["draft"] == 1
        assert stats["submitted"] == 1
        assert stats["rejected"] == 1
        assert stats["approved"] == 0

    def test_list_filters_and_pagination(self, service, draft_payload):
        """Status filter, search and page sizing"""
        for index in range(5):
            service.create_draft(draft_payload(notes=f"count {index}"))
        submitted = service.create_draft(draft_payload(notes="special aisle"))
        service.submit(submitted.id)

        page = service.list(page=1, page_size=4)
        assert page["total"] == 6
        assert page["total_pages"] == 2
        assert len(page["items"]) == 4

        drafts = service.list(status="draft")
        assert drafts["total"] == 5

        found = service.list(search="special")
        assert [d.id for d in found["items"]] == [submitted.id]

        everything = service.list(status="all", sort_by="reference_number", sort_order="asc")
        references = [d.reference_number for d in everything["items"]]
        assert references == sorted(references)

    def test_list_date_range(self, service, draft_payload):
        """Inventory date bounds are inclusive"""
        service.create_draft(draft_payload(inventory_date="2024-01-15"))
        service.create_draft(draft_payload(inventory_date="2024-02-15"))

        result = service.list(start_date=date(2024, 2, 1), end_date=date(2024, 2, 28))
        assert result["total"] == 1

    def test_list_unknown_status(self, service):
        """Unknown status filters are rejected"""
        with pytest.raises(ValidationError):
            service.list(status="archived")

    def test_get_other_tenant_document(self, db_session, draft_payload, service):
        """Documents from another tenant are not found"""
        from stockrecon.core.security import Actor

        document = service.create_draft(draft_payload())
        outsider = PhysicalInventoryService(db_session, Actor(actor_id="u9", tenant_id="tenant-2"))
        with pytest.raises(NotFoundError):
            outsider.get_by_id(document.id)
