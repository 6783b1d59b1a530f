"""
Concurrency tests with real commits from several threads.

Each worker gets its own session and orchestrator, exactly as separate
requests would.  Invariants checked afterwards:
- A wallet is never overdrawn: at most available/amount requests succeed
- Two admins approving one payout produce exactly one approval
- Conflicting payment confirmations settle the reservation once
- Concurrent credits are all applied and the log still replays

Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest

from payout_kernel.domain.clock import DeterministicClock
from payout_kernel.domain.payout import Actor, PayoutStatus
from payout_kernel.exceptions import ConflictError, InsufficientBalanceError, InvalidTransitionError
from payout_kernel.selectors import AuditSelector, PayoutSelector, WalletSelector
from payout_kernel.services.configuration import StaticConfigurationProvider
from payout_kernel.services.notifications import RecordingNotificationEmitter
from payout_kernel.services.orchestrator import PayoutOrchestrator
from tests.helpers import make_vendor

pytestmark = [pytest.mark.concurrency, pytest.mark.slow_locks]

D = Decimal
WORKERS = 6


@pytest.fixture
def build_orchestrator(committing_session_factory, test_policy, deterministic_clock, cipher):
    provider = StaticConfigurationProvider(test_policy)

    def _build():
        return PayoutOrchestrator(
            committing_session_factory(),
            provider,
            clock=DeterministicClock(deterministic_clock.now()),
            emitter=RecordingNotificationEmitter(),
            cipher=cipher,
        )

    return _build


def _run_concurrently(tasks):
    barrier = Barrier(len(tasks))

    def _worker(task):
        barrier.wait()
        try:
            return task()
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        return list(pool.map(_worker, tasks))


def test_competing_requests_never_overdraw(build_orchestrator, admin_actor):
    setup = build_orchestrator()
    vendor_id, method_id = make_vendor(setup, admin_actor, balance="1000.00")

    workers = [build_orchestrator() for _ in range(WORKERS)]
    results = _run_concurrently(
        [lambda o=o: o.request_payout(vendor_id, "800.00", method_id) for o in workers]
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(e, (InsufficientBalanceError, ConflictError)) for e in failed)

    reader = build_orchestrator().session
    balance = WalletSelector(reader).get_balance(vendor_id)
    assert balance.available_balance == D("200.00")
    assert balance.pending_balance == D("800.00")
    assert WalletSelector(reader).replay(vendor_id).matches
    assert PayoutSelector(reader).vendor_history(vendor_id).total == 1


def test_two_admins_approving_at_once(build_orchestrator, admin_actor):
    setup = build_orchestrator()
    vendor_id, method_id = make_vendor(setup, admin_actor)
    payout = setup.request_payout(vendor_id, "6000.00", method_id)

    admins = [admin_actor, Actor.admin(uuid4())]
    workers = [build_orchestrator() for _ in admins]
    results = _run_concurrently([
        lambda o=o, a=a: o.approve(payout.id, actor=a) for o, a in zip(workers, admins)
    ])

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(e, (InvalidTransitionError, ConflictError)) for e in failed)

    reader = build_orchestrator().session
    final = PayoutSelector(reader).get(payout.id)
    assert final.status is PayoutStatus.APPROVED
    assert final.approved_by == succeeded[0].approved_by
    assert [e.action for e in AuditSelector(reader).for_payout(payout.id)] == ["approved", "created"]
    assert WalletSelector(reader).get_balance(vendor_id).pending_balance == D("6000.00")


def test_conflicting_payment_confirmations(build_orchestrator, admin_actor):
    setup = build_orchestrator()
    vendor_id, method_id = make_vendor(setup, admin_actor)
    payout = setup.request_payout(vendor_id, "1000.00", method_id)
    setup.mark_processing(payout.id, actor=admin_actor)

    workers = [build_orchestrator() for _ in range(2)]
    results = _run_concurrently([
        lambda o=o, txn=txn: o.mark_paid(payout.id, txn, actor=admin_actor)
        for o, txn in zip(workers, ["UTR-A", "UTR-B"])
    ])

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(e, (InvalidTransitionError, ConflictError)) for e in failed)

    reader = build_orchestrator().session
    final = PayoutSelector(reader).get(payout.id)
    assert final.status is PayoutStatus.PAID
    assert final.transaction_id == succeeded[0].transaction_id

    balance = WalletSelector(reader).get_balance(vendor_id)
    assert balance.pending_balance == D("0.00")
    assert balance.total_payouts == D("985.00")
    assert WalletSelector(reader).replay(vendor_id).matches


def test_concurrent_credits_to_new_wallet(build_orchestrator):
    vendor_id = uuid4()
    workers = [build_orchestrator() for _ in range(WORKERS)]

    results = _run_concurrently(
        [lambda o=o: o.credit_earnings(vendor_id, "100.00") for o in workers]
    )

    applied = [r for r in results if not isinstance(r, Exception)]
    assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))

    reader = build_orchestrator().session
    balance = WalletSelector(reader).get_balance(vendor_id)
    assert balance.available_balance == D("100.00") * len(applied)
    assert sorted(r.seq for r in applied) == list(range(1, len(applied) + 1))
    assert WalletSelector(reader).replay(vendor_id).matches
