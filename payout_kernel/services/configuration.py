"""
Configuration Provider and ConfigurationService -- the active payout policy.

Responsibility:
    ``ConfigurationProvider.get_active()`` is the only way kernel code reads
    the fee schedule and caps; call sites never query the ``is_active`` flag
    themselves.  ``ConfigurationService`` installs new versions.

Architecture position:
    Kernel > Services.  PayoutStateMachine consumes a provider;
    PayoutOrchestrator exposes ``activate_configuration`` and
    ``seed_default_configuration`` for the admin surface.

Invariants enforced:
    - Exactly one active row: activation locks and deactivates the current
      row, flushes, then inserts the new one (the partial unique index is
      the backstop against two concurrent activations).
    - Rows are never deleted or edited in place; each activation is a new
      ``version`` from SequenceService.
    - DatabaseConfigurationProvider reads on every call, so each operation
      sees the current fee schedule.

Failure modes:
    - ConfigurationMissingError: no active row.
    - InvariantViolationError: more than one active row.
    - InvalidPolicyError: activation of an unusable policy.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payout_kernel.domain.clock import Clock
from payout_kernel.domain.policy import PayoutPolicy, ensure_valid_policy
from payout_kernel.exceptions import ConfigurationMissingError, InvariantViolationError
from payout_kernel.logging_config import get_logger
from payout_kernel.models.configuration import PayoutConfiguration
from payout_kernel.services.base import BaseService
from payout_kernel.services.sequence_service import CONFIGURATION_SEQUENCE, SequenceService

logger = get_logger("services.configuration")


class ConfigurationProvider(Protocol):
    def get_active(self) -> PayoutPolicy: ...


class StaticConfigurationProvider:
    """Always returns the same policy."""

    def __init__(self, policy: PayoutPolicy):
        self._policy = ensure_valid_policy(policy)

    def get_active(self) -> PayoutPolicy:
        return self._policy


class DatabaseConfigurationProvider:
    """Reads the single active ``PayoutConfiguration`` row on every call."""

    def __init__(self, session: Session):
        self._session = session

    def get_active(self) -> PayoutPolicy:
        rows = self._session.scalars(
            select(PayoutConfiguration).where(PayoutConfiguration.is_active.is_(True))
        ).all()
        if not rows:
            raise ConfigurationMissingError()
        if len(rows) > 1:
            raise InvariantViolationError(
                "single_active_configuration",
                f"{len(rows)} payout configurations are active",
                versions=[row.version for row in rows],
            )
        return rows[0].to_policy()


class ConfigurationService(BaseService[PayoutConfiguration]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def activate(self, policy: PayoutPolicy, actor_id: UUID | None = None) -> PayoutPolicy:
        """
        Make ``policy`` the active fee schedule as a new version.

        Returns:
            The stored policy with its ``version`` set.
        """
        ensure_valid_policy(policy)
        now = self.clock.now()

        current = self.session.scalars(
            select(PayoutConfiguration)
            .where(PayoutConfiguration.is_active.is_(True))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()
        for row in current:
            row.is_active = False
            row.deactivated_at = now
        if current:
            self.session.flush()

        version = self._sequences.next_value(CONFIGURATION_SEQUENCE)
        row = PayoutConfiguration(
            version=version,
            min_payout_amount=policy.min_payout_amount,
            max_payout_amount=policy.max_payout_amount,
            daily_payout_limit=policy.daily_payout_limit,
            monthly_payout_limit=policy.monthly_payout_limit,
            processing_fee_percentage=policy.processing_fee_percentage,
            processing_fee_fixed=policy.processing_fee_fixed,
            tds_percentage=policy.tds_percentage,
            auto_approval_limit=policy.auto_approval_limit,
            policy_hash=policy.fingerprint(),
            is_active=True,
            created_by_id=actor_id,
            created_at=now,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "payout_configuration_activated",
            extra={
                "version": version,
                "previous_versions": [r.version for r in current],
                "policy_hash": row.policy_hash,
            },
        )
        return row.to_policy()

    def seed_default(self, policy: PayoutPolicy, actor_id: UUID | None = None) -> PayoutPolicy:
        """Activate ``policy`` only when no configuration is active yet."""
        existing = self.session.scalars(
            select(PayoutConfiguration).where(PayoutConfiguration.is_active.is_(True))
        ).first()
        if existing is not None:
            logger.debug("payout_configuration_seed_skipped", extra={"version": existing.version})
            return existing.to_policy()
        return self.activate(policy, actor_id)

    def history(self) -> list[PayoutPolicy]:
        """Every version ever activated, newest first."""
        rows = self.session.scalars(
            select(PayoutConfiguration).order_by(PayoutConfiguration.version.desc())
        ).all()
        return [row.to_policy() for row in rows]
