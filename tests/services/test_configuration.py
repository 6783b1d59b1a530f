"""
Tests for the configuration provider and versioned activation.

Verifies:
- Exactly one active policy; activation creates a new version
- Payouts record the version whose fees they were computed with
- Invalid schedules are refused before anything is written
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from payout_kernel.domain.payout import Actor
from payout_kernel.exceptions import ConfigurationMissingError, InvalidPolicyError
from payout_kernel.models.configuration import PayoutConfiguration
from payout_kernel.services.configuration import (
    ConfigurationService,
    DatabaseConfigurationProvider,
    StaticConfigurationProvider,
)
from payout_kernel.services.orchestrator import PayoutOrchestrator
from tests.helpers import make_vendor

D = Decimal


@pytest.fixture
def db_orchestrator(session, deterministic_clock, emitter, cipher):
    """Orchestrator reading its policy from payout_configurations."""
    return PayoutOrchestrator(session, clock=deterministic_clock, emitter=emitter, cipher=cipher)


class TestDatabaseConfigurationProvider:

    def test_no_active_configuration(self, session):
        with pytest.raises(ConfigurationMissingError):
            DatabaseConfigurationProvider(session).get_active()

    def test_returns_activated_policy(self, session, test_policy, deterministic_clock):
        ConfigurationService(session, deterministic_clock).activate(test_policy)

        active = DatabaseConfigurationProvider(session).get_active()
        assert active.version is not None
        assert active.daily_payout_limit == D("10000.00")
        assert active.processing_fee_percentage == D("0.005")
        assert active.fingerprint() == test_policy.fingerprint()

    def test_rates_keep_six_decimal_places(self, session, test_policy, deterministic_clock):
        ConfigurationService(session, deterministic_clock).activate(
            replace(test_policy, processing_fee_percentage=D("0.004125"), tds_percentage=D("0.0075")),
        )
        session.expire_all()

        active = DatabaseConfigurationProvider(session).get_active()
        assert active.processing_fee_percentage == D("0.004125")
        assert active.tds_percentage == D("0.0075")

    def test_rate_columns_are_not_money_columns(self):
        columns = PayoutConfiguration.__table__.c
        assert columns.processing_fee_percentage.type.scale == 6
        assert columns.tds_percentage.type.scale == 6
        assert columns.processing_fee_fixed.type.scale == 2


class TestActivation:

    def test_versions_are_consecutive(self, db_orchestrator, session, test_policy, admin_actor):
        first = db_orchestrator.activate_configuration(test_policy, actor=admin_actor)
        second = db_orchestrator.activate_configuration(
            replace(test_policy, processing_fee_fixed=D("10.00")), actor=admin_actor,
        )

        assert second.version == first.version + 1
        active = DatabaseConfigurationProvider(session).get_active()
        assert active.version == second.version
        assert active.processing_fee_fixed == D("10.00")

    def test_history_newest_first(self, db_orchestrator, test_policy, admin_actor):
        db_orchestrator.activate_configuration(test_policy, actor=admin_actor)
        db_orchestrator.activate_configuration(
            replace(test_policy, tds_percentage=D("0.02")), actor=admin_actor,
        )

        history = db_orchestrator.configuration.history()
        assert len(history) == 2
        assert history[0].version > history[1].version
        assert history[0].tds_percentage == D("0.02")

    def test_invalid_policy_refused(self, db_orchestrator, session, test_policy, admin_actor):
        bad = replace(test_policy, min_payout_amount=D("200000.00"), tds_percentage=D("1.5"))

        with pytest.raises(InvalidPolicyError) as exc_info:
            db_orchestrator.activate_configuration(bad, actor=admin_actor)
        assert len(exc_info.value.errors) == 2
        assert db_orchestrator.configuration.history() == []

    def test_seed_default_is_idempotent(self, db_orchestrator, test_policy):
        seeded = db_orchestrator.seed_default_configuration(test_policy)
        again = db_orchestrator.seed_default_configuration(
            replace(test_policy, processing_fee_fixed=D("99.00")),
        )

        assert again.version == seeded.version
        assert again.processing_fee_fixed == D("5.00")
        assert len(db_orchestrator.configuration.history()) == 1

    def test_static_provider_validates(self, test_policy):
        with pytest.raises(InvalidPolicyError):
            StaticConfigurationProvider(replace(test_policy, daily_payout_limit=D("0")))


class TestPayoutsUseActiveVersion:

    def test_request_without_configuration(self, db_orchestrator, admin_actor):
        vendor_id, method_id = make_vendor(db_orchestrator, admin_actor)
        with pytest.raises(ConfigurationMissingError):
            db_orchestrator.request_payout(vendor_id, "1000.00", method_id)

    def test_payout_records_config_version(self, db_orchestrator, test_policy, admin_actor):
        first = db_orchestrator.seed_default_configuration(test_policy, Actor.system())
        vendor_id, method_id = make_vendor(db_orchestrator, admin_actor)

        before = db_orchestrator.request_payout(vendor_id, "1000.00", method_id)
        assert before.config_version == first.version
        assert before.processing_fee == D("5.00")

        second = db_orchestrator.activate_configuration(
            replace(test_policy, processing_fee_fixed=D("20.00")), actor=admin_actor,
        )
        after = db_orchestrator.request_payout(vendor_id, "1000.00", method_id)
        assert after.config_version == second.version
        assert after.processing_fee == D("20.00")
        assert after.final_amount == D("970.00")

    def test_fees_from_stored_policy(self, db_orchestrator, session, test_policy, admin_actor):
        db_orchestrator.seed_default_configuration(test_policy)
        vendor_id, method_id = make_vendor(db_orchestrator, admin_actor)
        session.expire_all()

        stored = DatabaseConfigurationProvider(session).get_active()
        assert stored.processing_fee_percentage == D("0.005")
        assert stored.tds_percentage == D("0.01")

        payout = db_orchestrator.request_payout(vendor_id, "2000.00", method_id)
        assert payout.processing_fee == D("10.00")
        assert payout.tds_amount == D("20.00")
        assert payout.final_amount == D("1970.00")
