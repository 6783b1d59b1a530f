"""
BaseService -- abstract base for payout kernel services.

Responsibility:
    Common constructor for every write-side service: a SQLAlchemy ``Session``
    owned by the caller and a ``Clock`` for every timestamp the service
    stamps.  Services persist with ``session.flush()`` only.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back.  PayoutOrchestrator (or the test
      harness) owns commit/rollback, so a payout transition, its ledger
      entry and its audit entry land together or not at all.

Failure modes:
    - A subclass calling ``session.commit()`` would break the atomicity of
      multi-step transitions.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payout_kernel.db.base import Base
from payout_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a ``Session`` from the caller and uses ``session.flush()``
        to persist changes within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide reporting queries -- those live in
          ``payout_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
