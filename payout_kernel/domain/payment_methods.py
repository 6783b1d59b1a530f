"""
Payment method rules (``payout_kernel.domain.payment_methods``).

Format validation, normalization and masking for bank accounts and UPI ids.
Masked forms are what vendors and reports see; the clear value only exists
encrypted at rest.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from payout_kernel.exceptions import InvalidPaymentMethodDetailsError

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
UPI_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")


class PaymentMethodType(str, Enum):
    BANK_ACCOUNT = "bank_account"
    UPI = "upi"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BankAccountDetails:
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    branch_name: str | None = None


@dataclass(frozen=True)
class UpiDetails:
    upi_id: str
    upi_provider: str | None = None
    account_holder_name: str | None = None


def normalize_bank_account(details: BankAccountDetails) -> BankAccountDetails:
    """Validate and normalize bank details (IFSC uppercased, spaces removed)."""
    holder = (details.account_holder_name or "").strip()
    if not holder:
        raise InvalidPaymentMethodDetailsError(
            "Account holder name is required", field="account_holder_name"
        )
    number = re.sub(r"\s+", "", details.account_number or "")
    if not ACCOUNT_NUMBER_PATTERN.match(number):
        raise InvalidPaymentMethodDetailsError(
            "Account number must be 9 to 18 digits", field="account_number"
        )
    ifsc = (details.ifsc_code or "").strip().upper()
    if not IFSC_PATTERN.match(ifsc):
        raise InvalidPaymentMethodDetailsError("Invalid IFSC code", field="ifsc_code")
    bank_name = (details.bank_name or "").strip()
    if not bank_name:
        raise InvalidPaymentMethodDetailsError("Bank name is required", field="bank_name")
    branch = details.branch_name.strip() if details.branch_name else None
    return BankAccountDetails(
        account_holder_name=holder,
        account_number=number,
        ifsc_code=ifsc,
        bank_name=bank_name,
        branch_name=branch or None,
    )


def normalize_upi(details: UpiDetails) -> UpiDetails:
    upi_id = (details.upi_id or "").strip().lower()
    if not UPI_PATTERN.match(upi_id):
        raise InvalidPaymentMethodDetailsError("Invalid UPI ID", field="upi_id")
    holder = details.account_holder_name.strip() if details.account_holder_name else None
    return UpiDetails(
        upi_id=upi_id,
        upi_provider=details.upi_provider,
        account_holder_name=holder or None,
    )


def mask_account_number(account_number: str) -> str:
    """``XXXX`` followed by the last four digits."""
    if not account_number or len(account_number) < 4:
        return "XXXX"
    return "XXXX" + account_number[-4:]


def mask_upi_id(upi_id: str) -> str:
    """Keep the first and last character of the handle: ``jane@upi`` -> ``j**e@upi``."""
    if not upi_id or "@" not in upi_id:
        return upi_id
    handle, domain = upi_id.split("@", 1)
    if len(handle) <= 2:
        masked = handle[0] + "*" * (len(handle) - 1)
    else:
        masked = handle[0] + "*" * (len(handle) - 2) + handle[-1]
    return f"{masked}@{domain}"
