"""Unit tests for payment method normalization and masking."""

import pytest

from payout_kernel.domain.payment_methods import (
    BankAccountDetails,
    UpiDetails,
    mask_account_number,
    mask_upi_id,
    normalize_bank_account,
    normalize_upi,
)
from payout_kernel.exceptions import InvalidPaymentMethodDetailsError


def _bank(**overrides) -> BankAccountDetails:
    values = dict(
        account_holder_name=" Asha Traders ",
        account_number="1234 5678 9012",
        ifsc_code="hdfc0001234",
        bank_name="HDFC Bank",
        branch_name="  ",
    )
    values.update(overrides)
    return BankAccountDetails(**values)


class TestBankAccount:

    def test_normalizes(self):
        details = normalize_bank_account(_bank())
        assert details.account_holder_name == "Asha Traders"
        assert details.account_number == "123456789012"
        assert details.ifsc_code == "HDFC0001234"
        assert details.branch_name is None

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"account_holder_name": ""}, "account_holder_name"),
            ({"account_number": "12345"}, "account_number"),
            ({"account_number": "12345678901234567890"}, "account_number"),
            ({"account_number": "12345678A"}, "account_number"),
            ({"ifsc_code": "HDFC1001234"}, "ifsc_code"),
            ({"ifsc_code": "HDF0001234"}, "ifsc_code"),
            ({"bank_name": " "}, "bank_name"),
        ],
    )
    def test_rejects_invalid(self, overrides, field):
        with pytest.raises(InvalidPaymentMethodDetailsError) as exc_info:
            normalize_bank_account(_bank(**overrides))
        assert exc_info.value.field == field


class TestUpi:

    def test_lowercases(self):
        details = normalize_upi(UpiDetails(upi_id=" Asha.Traders@OKHDFC "))
        assert details.upi_id == "asha.traders@okhdfc"

    @pytest.mark.parametrize("upi_id", ["", "no-at-sign", "@bank", "user@"])
    def test_rejects_invalid(self, upi_id):
        with pytest.raises(InvalidPaymentMethodDetailsError) as exc_info:
            normalize_upi(UpiDetails(upi_id=upi_id))
        assert exc_info.value.field == "upi_id"


class TestMasking:

    def test_account_number(self):
        assert mask_account_number("123456789012") == "XXXX9012"

    def test_short_account_number(self):
        assert mask_account_number("12") == "XXXX"

    @pytest.mark.parametrize(
        "upi_id, expected",
        [
            ("jane@upi", "j**e@upi"),
            ("ab@upi", "a*@upi"),
            ("a@upi", "a@upi"),
        ],
    )
    def test_upi(self, upi_id, expected):
        assert mask_upi_id(upi_id) == expected
