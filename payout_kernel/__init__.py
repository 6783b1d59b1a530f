"""
Payout Kernel - vendor wallet ledger and payout workflow

A row-locked, append-only payout subsystem with:
- Per-vendor wallet balances justified by a replayable transaction log
- A payout request state machine with fee and limit enforcement
- An immutable audit trail of every transition
- Fire-and-forget notification events dispatched after commit
"""

__version__ = "0.1.0"
