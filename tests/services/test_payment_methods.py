"""
Tests for PaymentMethodService through the orchestrator.

Verifies:
- Clear account numbers never leave the service except through reveal_secret
- First method becomes the default; at most one default per vendor
- Verification decisions are audited and notified
- Ownership: another vendor's method is reported as not found
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from payout_kernel.domain.payment_methods import PaymentMethodType, VerificationStatus
from payout_kernel.exceptions import (
    EncryptionError,
    InvalidPaymentMethodDetailsError,
    PaymentMethodNotFoundError,
    PayoutValidationError,
)
from payout_kernel.models.payment_method import PaymentMethod
from payout_kernel.selectors import AuditSelector, PaymentMethodSelector
from payout_kernel.services.orchestrator import PayoutOrchestrator
from tests.helpers import bank_details, upi_details


class TestAddPaymentMethod:

    def test_bank_account_is_masked_and_encrypted(self, orchestrator, session, emitter):
        vendor_id = uuid4()

        method = orchestrator.add_payment_method(vendor_id, bank_details())

        assert method.method_type is PaymentMethodType.BANK_ACCOUNT
        assert method.display == "HDFC Bank XXXX9012"
        assert method.ifsc_code == "HDFC0001234"
        assert method.verification_status is VerificationStatus.PENDING
        assert method.is_default is True
        assert not method.is_usable

        row = session.get(PaymentMethod, method.id)
        assert "123456789012" not in row.secret_encrypted
        assert len(row.secret_hash) == 64
        assert emitter.types() == ["payment_method_added"]

    def test_upi(self, orchestrator):
        method = orchestrator.add_payment_method(uuid4(), upi_details("AshaTraders@OKHDFC"))

        assert method.method_type is PaymentMethodType.UPI
        assert method.display == "a*********s@okhdfc"
        assert method.upi_provider == "okhdfc"

    def test_reveal_secret(self, orchestrator):
        method = orchestrator.add_payment_method(uuid4(), bank_details("1234 5678 9012"))
        assert orchestrator.payment_methods.reveal_secret(method.id) == "123456789012"

    def test_only_first_method_is_default(self, orchestrator):
        vendor_id = uuid4()
        first = orchestrator.add_payment_method(vendor_id, bank_details())
        second = orchestrator.add_payment_method(vendor_id, upi_details())

        assert first.is_default
        assert not second.is_default

    def test_explicit_default_replaces_previous(self, orchestrator):
        vendor_id = uuid4()
        first = orchestrator.add_payment_method(vendor_id, bank_details())
        second = orchestrator.add_payment_method(vendor_id, upi_details(), is_default=True)

        methods = {m.id: m for m in orchestrator.payment_methods.list_payment_methods(vendor_id)}
        assert methods[second.id].is_default
        assert not methods[first.id].is_default

    def test_duplicate_destination(self, orchestrator):
        vendor_id = uuid4()
        orchestrator.add_payment_method(vendor_id, bank_details())

        with pytest.raises(InvalidPaymentMethodDetailsError) as exc_info:
            orchestrator.add_payment_method(vendor_id, bank_details(bank_name="Other Bank"))
        assert exc_info.value.field == "account_number"

    def test_same_destination_for_different_vendors(self, orchestrator):
        orchestrator.add_payment_method(uuid4(), bank_details())
        orchestrator.add_payment_method(uuid4(), bank_details())

    def test_invalid_ifsc(self, orchestrator):
        details = bank_details()
        bad = type(details)(
            account_holder_name=details.account_holder_name,
            account_number=details.account_number,
            ifsc_code="HDFC1234",
            bank_name=details.bank_name,
        )
        with pytest.raises(InvalidPaymentMethodDetailsError) as exc_info:
            orchestrator.add_payment_method(uuid4(), bad)
        assert exc_info.value.field == "ifsc_code"

    def test_missing_cipher(self, session, config_provider, deterministic_clock, emitter):
        orchestrator = PayoutOrchestrator(
            session, config_provider, clock=deterministic_clock, emitter=emitter,
        )
        with pytest.raises(EncryptionError):
            orchestrator.add_payment_method(uuid4(), bank_details())


class TestDefaultAndDeactivate:

    def test_set_default_swaps(self, orchestrator):
        vendor_id = uuid4()
        first = orchestrator.add_payment_method(vendor_id, bank_details())
        second = orchestrator.add_payment_method(vendor_id, upi_details())

        updated = orchestrator.set_default_payment_method(second.id, vendor_id)

        assert updated.is_default
        listed = orchestrator.payment_methods.list_payment_methods(vendor_id)
        assert listed[0].id == second.id
        assert [m.is_default for m in listed] == [True, False]
        assert listed[1].id == first.id

    def test_set_default_on_other_vendors_method(self, orchestrator):
        method = orchestrator.add_payment_method(uuid4(), bank_details())
        with pytest.raises(PaymentMethodNotFoundError):
            orchestrator.set_default_payment_method(method.id, uuid4())

    def test_deactivate_hides_method(self, orchestrator):
        vendor_id = uuid4()
        method = orchestrator.add_payment_method(vendor_id, bank_details())

        deactivated = orchestrator.deactivate_payment_method(method.id, vendor_id)

        assert not deactivated.is_active
        assert not deactivated.is_default
        assert orchestrator.payment_methods.list_payment_methods(vendor_id) == []
        assert len(orchestrator.payment_methods.list_payment_methods(vendor_id, include_inactive=True)) == 1

    def test_inactive_method_cannot_be_default(self, orchestrator):
        vendor_id = uuid4()
        method = orchestrator.add_payment_method(vendor_id, bank_details())
        orchestrator.deactivate_payment_method(method.id, vendor_id)

        with pytest.raises(PayoutValidationError):
            orchestrator.set_default_payment_method(method.id, vendor_id)

    def test_deactivated_destination_can_be_added_again(self, orchestrator):
        vendor_id = uuid4()
        method = orchestrator.add_payment_method(vendor_id, bank_details())
        orchestrator.deactivate_payment_method(method.id, vendor_id)

        again = orchestrator.add_payment_method(vendor_id, bank_details())
        assert again.is_default


class TestVerification:

    def test_verify(self, orchestrator, session, admin_actor, emitter, deterministic_clock):
        method = orchestrator.add_payment_method(uuid4(), bank_details())
        emitter.events.clear()

        verified = orchestrator.verify_payment_method(
            method.id, VerificationStatus.VERIFIED, "matched cheque", actor=admin_actor,
        )

        assert verified.is_usable
        assert verified.verified_by == admin_actor.actor_id
        assert verified.verified_at == deterministic_clock.now()
        assert emitter.types() == ["payment_method_verified"]

        actions = [e.action for e in AuditSelector(session).for_payment_method(method.id)]
        assert actions == ["payment_method_verified", "payment_method_added"]

    def test_reject_verification(self, orchestrator, session, admin_actor, emitter):
        method = orchestrator.add_payment_method(uuid4(), bank_details())
        emitter.events.clear()

        rejected = orchestrator.verify_payment_method(
            method.id, VerificationStatus.REJECTED, "name mismatch", actor=admin_actor,
        )

        assert rejected.verification_status is VerificationStatus.REJECTED
        assert emitter.types() == ["payment_method_rejected"]
        assert "name mismatch" in emitter.events[0].message

        entry = AuditSelector(session).for_payment_method(method.id)[0]
        assert entry.old_status == "pending"
        assert entry.new_status == "rejected"
        assert entry.notes == "name mismatch"

    def test_pending_is_not_a_decision(self, orchestrator, admin_actor):
        method = orchestrator.add_payment_method(uuid4(), bank_details())
        with pytest.raises(PayoutValidationError):
            orchestrator.verify_payment_method(method.id, VerificationStatus.PENDING, actor=admin_actor)

    def test_unknown_method(self, orchestrator, admin_actor):
        with pytest.raises(PaymentMethodNotFoundError):
            orchestrator.verify_payment_method(uuid4(), VerificationStatus.VERIFIED, actor=admin_actor)

    def test_audit_never_stores_clear_account_number(self, orchestrator, session):
        vendor_id = uuid4()
        method = orchestrator.add_payment_method(vendor_id, bank_details())
        payloads = [e.payload for e in AuditSelector(session).for_payment_method(method.id)]
        assert all("123456789012" not in str(p) for p in payloads)
        assert session.execute(
            select(PaymentMethod.display).where(PaymentMethod.vendor_id == vendor_id)
        ).scalar_one() == "HDFC Bank XXXX9012"


class TestVerificationQueue:

    def test_oldest_pending_first(self, orchestrator, session, deterministic_clock):
        first = orchestrator.add_payment_method(uuid4(), bank_details())
        deterministic_clock.advance(60)
        second = orchestrator.add_payment_method(uuid4(), upi_details())
        deterministic_clock.advance(60)
        third = orchestrator.add_payment_method(uuid4(), bank_details("998877665544"))

        queue = PaymentMethodSelector(session)
        page = queue.pending_verification(page=1, page_size=2)
        assert page.total == 3
        assert page.pages == 2
        assert [m.id for m in page.items] == [first.id, second.id]
        assert queue.pending_verification(page=2, page_size=2).items[0].id == third.id

    def test_only_active_undecided_methods(self, orchestrator, session, admin_actor):
        vendor_id = uuid4()
        verified = orchestrator.add_payment_method(vendor_id, bank_details())
        rejected = orchestrator.add_payment_method(vendor_id, bank_details("998877665544"))
        withdrawn = orchestrator.add_payment_method(vendor_id, upi_details())
        waiting = orchestrator.add_payment_method(vendor_id, upi_details("asha@okaxis"))

        orchestrator.verify_payment_method(verified.id, VerificationStatus.VERIFIED, actor=admin_actor)
        orchestrator.verify_payment_method(
            rejected.id, VerificationStatus.REJECTED, "Name mismatch", actor=admin_actor,
        )
        orchestrator.deactivate_payment_method(withdrawn.id, vendor_id)

        page = PaymentMethodSelector(session).pending_verification()
        assert page.total == 1
        assert page.items[0].id == waiting.id
        assert page.items[0].display == "a**a@okaxis"
