"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per named sequence.  Wallet
    transactions and audit entries use one sequence per vendor so that their
    order is deterministic even when timestamps coincide; payout reference
    codes and configuration versions use their own sequences.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Monotonic: the locked counter row is the only source of the next value.
      Aggregate max-plus-one over the data table is never used.
    - Transactional: the increment is visible only when the caller commits;
      a rollback returns the value.

Failure modes:
    - IntegrityError on concurrent first use of a sequence is handled with a
      savepoint and a locked re-read.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payout_kernel.logging_config import get_logger
from payout_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def wallet_sequence(vendor_id: UUID) -> str:
    return f"wallet:{vendor_id}"


def audit_sequence(vendor_id: UUID) -> str:
    return f"audit:{vendor_id}"


def payout_sequence(vendor_id: UUID) -> str:
    return f"payout:{vendor_id}"


CONFIGURATION_SEQUENCE = "payout_configuration"


class SequenceService:
    """
    Transactional sequence numbers.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations of the
          same sequence.
        - Never calls ``session.commit()``; the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment, return.

        Returns:
            The next value, always > 0.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                # Another transaction created the row first
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
