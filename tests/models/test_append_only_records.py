"""
Append-only persistence tests.

Verifies:
- WalletTransaction rows can never be updated or deleted
- AuditLogEntry rows can never be updated or deleted
- PayoutRequest rows are never deleted and freeze once terminal
- Bulk UPDATE/DELETE statements are rejected the same way
"""

from decimal import Decimal

import pytest
from sqlalchemy import delete, select, update

from payout_kernel.exceptions import ImmutabilityViolationError
from payout_kernel.models.audit_log import AuditLogEntry
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.models.wallet import WalletTransaction

D = Decimal


@pytest.fixture
def paid_payout(orchestrator, vendor_factory, admin_actor):
    vendor_id, method_id = vendor_factory()
    payout = orchestrator.request_payout(vendor_id, "1000.00", method_id)
    orchestrator.mark_processing(payout.id, actor=admin_actor)
    return orchestrator.mark_paid(payout.id, "UTR-IMM", actor=admin_actor)


def _first_wallet_row(session, vendor_id) -> WalletTransaction:
    return session.execute(
        select(WalletTransaction).where(WalletTransaction.vendor_id == vendor_id).limit(1)
    ).scalar_one()


class TestWalletTransactionImmutability:

    def test_update_rejected(self, session, vendor_factory):
        vendor_id, _ = vendor_factory()
        row = _first_wallet_row(session, vendor_id)
        row.amount = D("1.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "WalletTransaction"

    def test_delete_rejected(self, session, vendor_factory):
        vendor_id, _ = vendor_factory()
        session.delete(_first_wallet_row(session, vendor_id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_bulk_update_rejected(self, session, vendor_factory):
        vendor_id, _ = vendor_factory()
        with pytest.raises(ImmutabilityViolationError):
            session.execute(
                update(WalletTransaction)
                .where(WalletTransaction.vendor_id == vendor_id)
                .values(amount=D("0.01"))
            )


class TestAuditLogImmutability:

    def test_update_rejected(self, session, paid_payout):
        entry = session.execute(
            select(AuditLogEntry).where(AuditLogEntry.payout_id == paid_payout.id).limit(1)
        ).scalar_one()
        entry.notes = "edited"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "AuditLogEntry"

    def test_bulk_delete_rejected(self, session, paid_payout):
        with pytest.raises(ImmutabilityViolationError):
            session.execute(delete(AuditLogEntry).where(AuditLogEntry.payout_id == paid_payout.id))


class TestPayoutRequestImmutability:

    def test_paid_payout_frozen(self, session, paid_payout):
        payout = session.get(PayoutRequest, paid_payout.id)
        payout.admin_notes = "late edit"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert "paid" in exc_info.value.reason

    def test_rejected_payout_frozen(self, session, orchestrator, vendor_factory, admin_actor):
        vendor_id, method_id = vendor_factory()
        payout = orchestrator.request_payout(vendor_id, "6000.00", method_id)
        orchestrator.reject(payout.id, "Not eligible", actor=admin_actor)

        row = session.get(PayoutRequest, payout.id)
        row.status = "approved"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_in_flight_payout_can_change(self, session, orchestrator, vendor_factory):
        vendor_id, method_id = vendor_factory()
        payout = orchestrator.request_payout(vendor_id, "6000.00", method_id)

        row = session.get(PayoutRequest, payout.id)
        row.admin_notes = "checked with vendor"
        session.flush()

    def test_delete_rejected(self, session, orchestrator, vendor_factory):
        vendor_id, method_id = vendor_factory()
        payout = orchestrator.request_payout(vendor_id, "6000.00", method_id)

        session.delete(session.get(PayoutRequest, payout.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
