"""
Typed Exception Hierarchy for the Payout Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Vendors and administrators must see the specific business rule that stopped
their action ("Minimum payout amount is 100.00"), never a database error or a
stack trace.  Callers therefore catch by TYPE and read structured attributes;
they never parse message strings.

Every exception:
  1. Has a typed class (catch by type, not message)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Carries its context as attributes (amounts, ids, limits)

Example:
    try:
        orchestrator.request_payout(vendor_id, amount, method_id, actor=actor)
    except DailyLimitExceededError as e:
        api_response(code=e.code, limit=e.limit, used=e.used)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayoutKernelError (base)
    |
    +-- PayoutValidationError
    |   +-- AmountOutOfRangeError
    |   +-- MissingRejectionReasonError
    |   +-- MissingTransactionIdError
    |   +-- InvalidPolicyError
    |   +-- InvalidPaymentMethodDetailsError
    |
    +-- BusinessRuleError
    |   +-- InsufficientBalanceError
    |   +-- DailyLimitExceededError
    |   +-- MonthlyLimitExceededError
    |   +-- UnverifiedPaymentMethodError
    |   +-- ExceedsReservedAmountError
    |
    +-- InvalidTransitionError
    +-- InvariantViolationError
    +-- ConfigurationMissingError
    +-- EncryptionError
    |
    +-- NotFoundError
    |   +-- PayoutNotFoundError
    |   +-- PaymentMethodNotFoundError
    |   +-- WalletNotFoundError
    |   +-- NotificationNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|--------------------------------------
Validation      | VALIDATION_ERROR               | Malformed input (notes too long, ...)
                | AMOUNT_OUT_OF_RANGE            | Amount outside policy min/max
                | MISSING_REJECTION_REASON       | Reject without a reason
                | MISSING_TRANSACTION_ID         | Mark paid without proof of payment
                | INVALID_POLICY                 | Fee schedule fails validation
                | INVALID_PAYMENT_METHOD_DETAILS | Bad IFSC / account number / UPI id
----------------|--------------------------------|--------------------------------------
Business rule   | INSUFFICIENT_BALANCE           | available_balance < amount
                | DAILY_LIMIT_EXCEEDED           | Same-day requests + amount > cap
                | MONTHLY_LIMIT_EXCEEDED         | Same-month requests + amount > cap
                | UNVERIFIED_PAYMENT_METHOD      | Method inactive or not verified
                | EXCEEDS_RESERVED_AMOUNT        | Approval above the reservation
----------------|--------------------------------|--------------------------------------
State machine   | INVALID_TRANSITION             | Action not allowed from status
----------------|--------------------------------|--------------------------------------
Ledger          | INVARIANT_VIOLATION            | Ledger math would go negative or
                |                                | replay disagrees (ALERT)
----------------|--------------------------------|--------------------------------------
Dependencies    | CONFIGURATION_MISSING          | No active payout configuration
                | NOT_FOUND / *_NOT_FOUND        | Missing payout, method, wallet
                | ENCRYPTION_ERROR               | Encryption key missing or wrong
----------------|--------------------------------|--------------------------------------
Concurrency     | CONFLICT                       | Lock timeout, deadlock (retryable)
----------------|--------------------------------|--------------------------------------
Immutability    | IMMUTABILITY_VIOLATION         | Update/delete of append-only rows

===============================================================================
HANDLING PATTERNS
===============================================================================

1. BUSINESS RULES are surfaced verbatim and never retried automatically:

    except BusinessRuleError as e:
        return {"error": e.code, "message": str(e)}

2. CONFLICTS are safe to retry; nothing was applied:

    except ConflictError as e:
        if e.retryable:
            retry_later()

3. INVARIANT VIOLATIONS mean an earlier operation is wrong.  They are logged
   at CRITICAL with ``alert=True`` by the orchestrator and must reach a human.

===============================================================================
"""

from decimal import Decimal


class PayoutKernelError(Exception):
    """
    Base exception for all payout kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYOUT_KERNEL_ERROR"
    retryable: bool = False


# Validation errors


class PayoutValidationError(PayoutKernelError):
    """Malformed or out-of-range input; the caller can correct and resubmit."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AmountOutOfRangeError(PayoutValidationError):
    """Requested amount is outside the active policy bounds."""

    code: str = "AMOUNT_OUT_OF_RANGE"

    def __init__(
        self,
        amount: Decimal,
        minimum: Decimal | None = None,
        maximum: Decimal | None = None,
        message: str | None = None,
    ):
        self.amount = amount
        self.minimum = minimum
        self.maximum = maximum
        if message is None:
            if minimum is not None and amount < minimum:
                message = f"Minimum payout amount is {minimum}"
            elif maximum is not None and amount > maximum:
                message = f"Maximum payout amount is {maximum}"
            else:
                message = f"Payout amount {amount} is not allowed"
        super().__init__(message, field="amount")


class MissingRejectionReasonError(PayoutValidationError):
    """A rejection was attempted without a reason."""

    code: str = "MISSING_REJECTION_REASON"

    def __init__(self, payout_id: str):
        self.payout_id = payout_id
        super().__init__("Rejection reason is required", field="reason")


class MissingTransactionIdError(PayoutValidationError):
    """Mark-paid was attempted without an operator transaction reference."""

    code: str = "MISSING_TRANSACTION_ID"

    def __init__(self, payout_id: str):
        self.payout_id = payout_id
        super().__init__(
            "Transaction ID is required to mark a payout as paid",
            field="transaction_id",
        )


class InvalidPolicyError(PayoutValidationError):
    """A payout fee schedule failed validation."""

    code: str = "INVALID_POLICY"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid payout configuration: " + "; ".join(errors))


class InvalidPaymentMethodDetailsError(PayoutValidationError):
    """Bank account or UPI details are malformed."""

    code: str = "INVALID_PAYMENT_METHOD_DETAILS"


# Business rule rejections


class BusinessRuleError(PayoutKernelError):
    """Base exception for business-rule rejections."""

    code: str = "BUSINESS_RULE_VIOLATION"


class InsufficientBalanceError(BusinessRuleError):
    """Available balance does not cover the requested amount."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, vendor_id: str, available: Decimal, requested: Decimal):
        self.vendor_id = vendor_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance. Available: {available}, requested: {requested}"
        )


class DailyLimitExceededError(BusinessRuleError):
    """Same-day payout requests plus this amount exceed the daily cap."""

    code: str = "DAILY_LIMIT_EXCEEDED"

    def __init__(self, vendor_id: str, limit: Decimal, used: Decimal, requested: Decimal):
        self.vendor_id = vendor_id
        self.limit = limit
        self.used = used
        self.requested = requested
        super().__init__(
            f"Daily payout limit of {limit} exceeded. "
            f"Remaining today: {max(limit - used, Decimal('0'))}"
        )


class MonthlyLimitExceededError(BusinessRuleError):
    """Same-month payout requests plus this amount exceed the monthly cap."""

    code: str = "MONTHLY_LIMIT_EXCEEDED"

    def __init__(self, vendor_id: str, limit: Decimal, used: Decimal, requested: Decimal):
        self.vendor_id = vendor_id
        self.limit = limit
        self.used = used
        self.requested = requested
        super().__init__(
            f"Monthly payout limit of {limit} exceeded. "
            f"Remaining this month: {max(limit - used, Decimal('0'))}"
        )


class UnverifiedPaymentMethodError(BusinessRuleError):
    """Payment method is inactive or has not been verified."""

    code: str = "UNVERIFIED_PAYMENT_METHOD"

    def __init__(self, payment_method_id: str, verification_status: str, is_active: bool):
        self.payment_method_id = payment_method_id
        self.verification_status = verification_status
        self.is_active = is_active
        if not is_active:
            message = "Payment method is no longer active"
        else:
            message = "Payment method is not verified"
        super().__init__(message)


class ExceedsReservedAmountError(BusinessRuleError):
    """Approval amount is larger than the funds reserved for the payout."""

    code: str = "EXCEEDS_RESERVED_AMOUNT"

    def __init__(self, payout_id: str, reserved: Decimal, approved: Decimal):
        self.payout_id = payout_id
        self.reserved = reserved
        self.approved = approved
        super().__init__(
            f"Approved amount {approved} exceeds reserved amount {reserved}"
        )


# State machine


class InvalidTransitionError(PayoutKernelError):
    """Attempted state change is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, payout_id: str, current_status: str, action: str, message: str | None = None):
        self.payout_id = payout_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            message or f"Cannot {action} a payout in status '{current_status}'"
        )


# Ledger integrity


class InvariantViolationError(PayoutKernelError):
    """
    Ledger math would go negative or a replay does not match stored state.

    Indicates a bug in an earlier operation.  Never swallowed; the
    orchestrator logs it at CRITICAL with ``alert=True``.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, message: str, **context):
        self.invariant = invariant
        self.context = context
        super().__init__(message)


# Dependencies


class ConfigurationMissingError(PayoutKernelError):
    """No active payout configuration exists."""

    code: str = "CONFIGURATION_MISSING"

    def __init__(self, message: str = "No active payout configuration"):
        super().__init__(message)


class EncryptionError(PayoutKernelError):
    """Sensitive data could not be encrypted or decrypted."""

    code: str = "ENCRYPTION_ERROR"


class NotFoundError(PayoutKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class PayoutNotFoundError(NotFoundError):
    """Payout request with given ID was not found."""

    code: str = "PAYOUT_NOT_FOUND"

    def __init__(self, payout_id: str):
        self.payout_id = payout_id
        super().__init__(f"Payout request not found: {payout_id}")


class PaymentMethodNotFoundError(NotFoundError):
    """Payment method not found, or not owned by the vendor."""

    code: str = "PAYMENT_METHOD_NOT_FOUND"

    def __init__(self, payment_method_id: str, vendor_id: str | None = None):
        self.payment_method_id = payment_method_id
        self.vendor_id = vendor_id
        super().__init__(f"Payment method not found: {payment_method_id}")


class WalletNotFoundError(NotFoundError):
    """Vendor has no wallet row."""

    code: str = "WALLET_NOT_FOUND"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Wallet not found for vendor: {vendor_id}")


class NotificationNotFoundError(NotFoundError):
    """In-app notification not found, or not addressed to the vendor."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


# Concurrency


class ConcurrencyError(PayoutKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Lock wait timed out or the transaction lost a concurrency race.

    The whole unit of work was rolled back; the caller may retry.
    """

    code: str = "CONFLICT"
    retryable: bool = True

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Concurrent modification during {operation}: {reason}. Please retry."
        )


# Immutability


class ImmutabilityViolationError(PayoutKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
