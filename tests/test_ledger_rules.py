from datetime import date
from decimal import Decimal

import pytest

from walletapi.core.exceptions import ValidationError
from walletapi.core.ledger_rules import (
    DIRECT_TRANSACTION_TYPES,
    is_payout_eligible,
    margin_revenue,
    minimum_payout_points,
    next_payout_date,
    next_topup_due_date,
    points_for_amount,
    points_value_ttd,
    validate_direct_transaction_type,
    validate_transaction_shape,
)
from walletapi.models.wallet import TransactionType
from walletapi.schemas.platform import PlatformPricing


@pytest.fixture
def pricing():
    return PlatformPricing(
        buy_price_per_point=Decimal("2.00"),
        user_value_per_point=Decimal("1.50"),
        payout_minimum_ttd=Decimal("100.00"),
        mandatory_topup_ttd=Decimal("150.00"),
        referral_bonus_points=20,
        referral_max_topups=3,
    )


class TestPointsForAmount:
    def test_whole_points(self, pricing):
        assert points_for_amount(Decimal("100.00"), pricing) == 50

    def test_rounds_down(self, pricing):
        assert points_for_amount(Decimal("101.99"), pricing) == 50

    def test_below_one_point(self, pricing):
        assert points_for_amount(Decimal("1.99"), pricing) == 0

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, pricing, amount):
        with pytest.raises(ValidationError):
            points_for_amount(amount, pricing)


class TestPayoutThreshold:
    def test_minimum_is_ceiling(self, pricing):
        # 100 / 1.50 = 66.67
        assert minimum_payout_points(pricing) == 67

    def test_eligibility_boundary(self, pricing):
        assert is_payout_eligible(66, pricing) is False
        assert is_payout_eligible(67, pricing) is True

    def test_zero_earnings_never_eligible(self, pricing):
        free = pricing.model_copy(update={"payout_minimum_ttd": Decimal("0")})
        assert minimum_payout_points(free) == 0
        assert is_payout_eligible(0, free) is False


def test_points_value_rounds_to_cents():
    assert points_value_ttd(67, Decimal("1.50")) == Decimal("100.50")
    assert points_value_ttd(1, Decimal("0.3333")) == Decimal("0.33")


def test_margin_revenue_clamped_at_zero():
    assert margin_revenue(50, Decimal("2.00"), Decimal("1.50")) == Decimal("25.00")
    assert margin_revenue(50, Decimal("1.00"), Decimal("1.50")) == Decimal("0.00")


class TestNextPayoutDate:
    def test_payout_day_returns_same_day(self):
        assert next_payout_date(date(2026, 3, 1)) == date(2026, 3, 1)

    def test_mid_month_rolls_to_next_month(self):
        assert next_payout_date(date(2026, 3, 15)) == date(2026, 4, 1)

    def test_december_rolls_year(self):
        assert next_payout_date(date(2026, 12, 2)) == date(2027, 1, 1)

    def test_later_payout_day_in_same_month(self):
        assert next_payout_date(date(2026, 3, 10), day_of_month=15) == date(2026, 3, 15)


def test_topup_due_date_clamps_month_end():
    assert next_topup_due_date(date(2026, 1, 31)) == date(2026, 2, 28)


class TestTransactionShape:
    @pytest.mark.parametrize(
        "transaction_type, points, earnings",
        [
            (TransactionType.TOP_UP, 50, 0),
            (TransactionType.POINT_SPEND, -10, 0),
            (TransactionType.EARNING_CREDIT, 0, 5),
            (TransactionType.PAYOUT_LOCK, 0, -67),
            (TransactionType.PAYOUT, 0, 0),
        ],
    )
    def test_valid_shapes(self, transaction_type, points, earnings):
        validate_transaction_shape(transaction_type, points, earnings)

    @pytest.mark.parametrize(
        "transaction_type, points, earnings",
        [
            (TransactionType.TOP_UP, -50, 0),
            (TransactionType.POINT_SPEND, 10, 0),
            (TransactionType.POINT_SPEND, -10, 5),
            (TransactionType.EARNING_CREDIT, 0, 0),
            (TransactionType.PAYOUT_LOCK, 0, 67),
        ],
    )
    def test_invalid_shapes(self, transaction_type, points, earnings):
        with pytest.raises(ValidationError):
            validate_transaction_shape(transaction_type, points, earnings)


class TestDirectTransactionType:
    @pytest.mark.parametrize(
        "transaction_type", [TransactionType.POINT_SPEND, TransactionType.POINT_REFUND]
    )
    def test_point_types_allowed(self, transaction_type):
        validate_direct_transaction_type(transaction_type)

    @pytest.mark.parametrize(
        "transaction_type",
        [t for t in TransactionType if t not in DIRECT_TRANSACTION_TYPES],
    )
    def test_side_ledger_types_rejected(self, transaction_type):
        with pytest.raises(ValidationError) as exc_info:
            validate_direct_transaction_type(transaction_type)

        assert exc_info.value.details["type"] == transaction_type.value

    def test_top_up_points_to_verification(self):
        with pytest.raises(ValidationError, match="top-up"):
            validate_direct_transaction_type("top_up")
