"""
Payout policy value object (``payout_kernel.domain.policy``).

Responsibility
--------------
The fee schedule and caps that govern payout requests: amount bounds,
daily/monthly caps, processing fee (percentage with a fixed floor), TDS rate
and the auto-approval threshold.  Pure data; the Configuration Provider
decides which policy is active.

Invariants enforced
-------------------
* ``validate_policy`` lists every problem at once so an administrator can
  fix a schedule in one pass.
* ``fingerprint`` is a deterministic SHA-256 over the normalized values and
  identifies a schedule independently of its database row.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from payout_kernel.exceptions import InvalidPolicyError
from payout_kernel.utils.hashing import hash_payload

_AMOUNT_FIELDS = (
    "min_payout_amount",
    "max_payout_amount",
    "daily_payout_limit",
    "monthly_payout_limit",
    "auto_approval_limit",
)

_RATE_FIELDS = ("processing_fee_percentage", "tds_percentage")

# Storage precision of payout_configurations columns
_AMOUNT_PLACES = 2
_RATE_PLACES = 6


@dataclass(frozen=True)
class PayoutPolicy:
    """Active payout fee schedule and caps.

    Percentages are fractions: ``Decimal("0.005")`` is 0.5%.
    """

    min_payout_amount: Decimal
    max_payout_amount: Decimal
    daily_payout_limit: Decimal
    monthly_payout_limit: Decimal
    processing_fee_percentage: Decimal
    processing_fee_fixed: Decimal
    tds_percentage: Decimal
    auto_approval_limit: Decimal
    version: int | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PayoutPolicy:
        """Build from a dict of strings/numbers (YAML, API payloads)."""
        values = {}
        for name in _AMOUNT_FIELDS + _RATE_FIELDS + ("processing_fee_fixed",):
            if name not in data:
                raise KeyError(f"Missing payout policy field: {name}")
            values[name] = Decimal(str(data[name]))
        return cls(version=data.get("version"), **values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("version")
        return data

    def fingerprint(self) -> str:
        return hash_payload(self.to_dict())


def validate_policy(policy: PayoutPolicy) -> list[str]:
    """Return a list of validation problems; empty when the policy is usable."""
    errors: list[str] = []
    for name in _AMOUNT_FIELDS:
        if getattr(policy, name) <= 0:
            errors.append(f"{name} must be positive")
    for name in _AMOUNT_FIELDS + ("processing_fee_fixed",):
        if _places(getattr(policy, name)) > _AMOUNT_PLACES:
            errors.append(f"{name} must have at most {_AMOUNT_PLACES} decimal places")
    if policy.processing_fee_fixed < 0:
        errors.append("processing_fee_fixed must not be negative")
    for name in _RATE_FIELDS:
        value = getattr(policy, name)
        if value < 0 or value > 1:
            errors.append(f"{name} must be between 0 and 1")
        elif _places(value) > _RATE_PLACES:
            errors.append(f"{name} must have at most {_RATE_PLACES} decimal places")
    if policy.min_payout_amount > policy.max_payout_amount:
        errors.append("min_payout_amount must not exceed max_payout_amount")
    if policy.daily_payout_limit > policy.monthly_payout_limit:
        errors.append("daily_payout_limit must not exceed monthly_payout_limit")
    return errors


def _places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return max(0, -exponent)


def ensure_valid_policy(policy: PayoutPolicy) -> PayoutPolicy:
    """Raise InvalidPolicyError unless ``validate_policy`` is clean."""
    errors = validate_policy(policy)
    if errors:
        raise InvalidPolicyError(errors)
    return policy
