"""
원장 계산 규칙 (순수 함수)

가격 정보는 전역 설정이 아닌 PlatformPricing 객체로 명시적으로 전달받습니다.
모든 함수는 DB 상태를 읽거나 변경하지 않습니다.
"""

import math
from datetime import date
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from walletapi.core.exceptions import ValidationError
from walletapi.models.wallet import TransactionType
from walletapi.schemas.platform import PlatformPricing

CENTS = Decimal("0.01")

Number = Union[Decimal, int, str]

# 거래 유형별 (points_delta 부호, earnings_points_delta 부호)
#   +1: 양수만 허용, -1: 음수만 허용, 0: 반드시 0, None: 제약 없음
TRANSACTION_SHAPES = {
    TransactionType.TOP_UP: (1, 0),
    TransactionType.POINT_SPEND: (-1, 0),
    TransactionType.POINT_REFUND: (1, 0),
    TransactionType.EARNING_CREDIT: (0, 1),
    TransactionType.EARNING_REVERSAL: (0, -1),
    TransactionType.REFERRAL_BONUS: (0, 1),
    TransactionType.PAYOUT_LOCK: (0, -1),
    TransactionType.PAYOUT_RELEASE: (0, 1),
    TransactionType.PAYOUT: (0, 0),
}

# 직접 적용 가능한 유형 - 나머지 유형은 전용 흐름으로만 기록됨
DIRECT_TRANSACTION_TYPES = (TransactionType.POINT_SPEND, TransactionType.POINT_REFUND)

MANAGED_TRANSACTION_FLOWS = {
    TransactionType.TOP_UP: "submit and verify the top-up",
    TransactionType.EARNING_CREDIT: "credit earnings",
    TransactionType.EARNING_REVERSAL: "reverse the earnings entry",
    TransactionType.REFERRAL_BONUS: "process the referral top-up",
    TransactionType.PAYOUT_LOCK: "generate payouts",
    TransactionType.PAYOUT_RELEASE: "cancel the payout",
    TransactionType.PAYOUT: "mark the payout paid",
}


def validate_direct_transaction_type(transaction_type: TransactionType) -> None:
    """부수 원장(수익 항목, 지급, 충전 검증)이 없는 유형만 직접 적용 허용"""
    transaction_type = TransactionType(transaction_type)
    if transaction_type in DIRECT_TRANSACTION_TYPES:
        return
    raise ValidationError(
        f"{transaction_type.value} cannot be applied directly; "
        f"{MANAGED_TRANSACTION_FLOWS[transaction_type]} instead",
        details={
            "type": transaction_type.value,
            "allowed_types": [t.value for t in DIRECT_TRANSACTION_TYPES],
        },
    )


def _to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _matches_sign(value: int, sign: Optional[int]) -> bool:
    if sign is None:
        return True
    if sign == 0:
        return value == 0
    return value * sign > 0


def validate_transaction_shape(
    transaction_type: TransactionType, points_delta: int, earnings_delta: int
) -> None:
    """거래 유형별 부호 규칙 검증"""
    points_sign, earnings_sign = TRANSACTION_SHAPES[TransactionType(transaction_type)]
    if not _matches_sign(points_delta, points_sign) or not _matches_sign(
        earnings_delta, earnings_sign
    ):
        raise ValidationError(
            f"Invalid deltas for {TransactionType(transaction_type).value}",
            details={
                "points_delta": points_delta,
                "earnings_points_delta": earnings_delta,
            },
        )


def points_for_amount(amount_ttd: Number, pricing: PlatformPricing) -> int:
    """충전 금액으로 지급할 포인트 - floor(amount / buy_price_per_point)

    예: 100 TTD / 2.00 = 50 포인트
    """
    amount = _to_decimal(amount_ttd)
    if amount <= 0:
        raise ValidationError("Top-up amount must be greater than zero")
    points = (amount / pricing.buy_price_per_point).to_integral_value(
        rounding=ROUND_FLOOR
    )
    return int(points)


def points_value_ttd(points: int, value_per_point: Number) -> Decimal:
    """포인트의 TTD 환산 가치 (센트 단위 반올림)"""
    return (Decimal(points) * _to_decimal(value_per_point)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


def minimum_payout_points(pricing: PlatformPricing) -> int:
    """최소 지급 포인트 = ceil(payout_minimum_ttd / user_value_per_point)

    예: 100 / 1.50 -> 67
    """
    return int(math.ceil(pricing.payout_minimum_ttd / pricing.user_value_per_point))


def is_payout_eligible(earnings_points: int, pricing: PlatformPricing) -> bool:
    return earnings_points > 0 and earnings_points >= minimum_payout_points(pricing)


def margin_revenue(
    points_credited: int, buy_price_per_point: Number, user_value_per_point: Number
) -> Decimal:
    """충전 1건의 마진 수익 = points * (buy - user_value), 음수는 0으로 보정"""
    margin = _to_decimal(buy_price_per_point) - _to_decimal(user_value_per_point)
    revenue = (Decimal(points_credited) * margin).quantize(CENTS, rounding=ROUND_HALF_UP)
    return max(revenue, Decimal("0.00"))


def next_payout_date(as_of: date, day_of_month: int = 1) -> date:
    """다음 지급 사이클 날짜 - 오늘이 지급일이면 오늘"""
    if as_of.day == day_of_month:
        return as_of
    if as_of.day < day_of_month:
        return as_of + relativedelta(day=day_of_month)
    return as_of + relativedelta(months=1, day=day_of_month)


def next_topup_due_date(topup_on: date, period_months: int = 1) -> date:
    return topup_on + relativedelta(months=period_months)
