"""
플랫폼 수익 집계 서비스 (읽기 전용)

두 가지 집계 규칙을 제공하며 호출자가 반드시 하나를 선택합니다.

- margin: 검증된 충전마다 points * (buy_price - user_value) 를 수익으로 인식.
  충전 시점의 가격 스냅샷을 사용하며, 스냅샷이 없으면 현재 가격을 사용.
- flat: 검증된 충전 금액 전액 + 음성메모/이벤트 사용 포인트의 사용자 가치.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from walletapi.core.ledger_rules import CENTS, margin_revenue, points_value_ttd
from walletapi.models.platform import WithdrawalStatus
from walletapi.models.wallet import SpendCategory
from walletapi.repositories.earnings_repository import EarningsRepository, PayoutRepository
from walletapi.repositories.platform_repository import (
    PlatformSettingsRepository,
    PlatformWithdrawalRepository,
)
from walletapi.repositories.transaction_repository import TransactionRepository
from walletapi.schemas.platform import PlatformWithdrawalResponse
from walletapi.schemas.revenue import RevenueBreakdown, RevenueRule
from walletapi.services.base_service import BaseLedgerService
from walletapi.utils.clock import LedgerClock

logger = logging.getLogger(__name__)

REVENUE_SPEND_CATEGORIES = (SpendCategory.VOICE_NOTE.value, SpendCategory.LIVE_EVENT.value)

ZERO = Decimal("0.00")


class RevenueService(BaseLedgerService):
    def __init__(self, db: Session, settings: Settings):
        super().__init__(db, settings)
        self.transaction_repo = TransactionRepository(db)
        self.earnings_repo = EarningsRepository(db)
        self.payout_repo = PayoutRepository(db)
        self.platform_repo = PlatformSettingsRepository(db)
        self.withdrawal_repo = PlatformWithdrawalRepository(db)

    def compute_revenue(
        self,
        rule: RevenueRule,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> RevenueBreakdown:
        """플랫폼 수익 집계

        Args:
            rule: 집계 규칙 (margin | flat)
            start: 집계 시작 시각 (포함)
            end: 집계 종료 시각 (미포함)

        Returns:
            RevenueBreakdown: 규칙에 따른 수익 내역
        """
        rule = RevenueRule(rule)
        start = LedgerClock.to_utc(start)
        end = LedgerClock.to_utc(end)
        if start is not None and end is not None and start >= end:
            raise ValidationError(
                "start must be before end",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )

        pricing = self.platform_repo.get_pricing()

        topups = self.transaction_repo.verified_topups(start, end)
        total_topup_amount = sum(
            (Decimal(topup.amount_ttd or 0) for topup in topups), ZERO
        )
        points_credited = sum(topup.points_delta for topup in topups)
        spent_points = self.transaction_repo.spent_points_by_category(
            REVENUE_SPEND_CATEGORIES, start, end
        )

        if rule == RevenueRule.MARGIN:
            topup_revenue = sum(
                (
                    margin_revenue(
                        topup.points_delta,
                        topup.buy_price_per_point_at_time or pricing.buy_price_per_point,
                        topup.user_value_per_point_at_time or pricing.user_value_per_point,
                    )
                    for topup in topups
                ),
                ZERO,
            )
            spend_revenue = ZERO
        else:
            topup_revenue = total_topup_amount.quantize(CENTS)
            spend_revenue = sum(
                (
                    points_value_ttd(points, value or pricing.user_value_per_point)
                    for points, value in self.transaction_repo.sum_spend_value_by_category(
                        REVENUE_SPEND_CATEGORIES, start, end
                    )
                ),
                ZERO,
            )

        total_revenue = topup_revenue + spend_revenue
        user_earnings = self.earnings_repo.sum_outstanding_amount(start, end).quantize(CENTS)
        user_payouts = self.payout_repo.sum_paid_amount(start, end).quantize(CENTS)
        withdrawals = self.withdrawal_repo.sum_completed(start, end).quantize(CENTS)
        available = max(total_revenue - user_earnings - user_payouts - withdrawals, ZERO)

        return RevenueBreakdown(
            rule=rule,
            start=start,
            end=end,
            topup_count=len(topups),
            total_topup_amount_ttd=total_topup_amount.quantize(CENTS),
            points_credited=points_credited,
            topup_revenue_ttd=topup_revenue,
            spend_revenue_ttd=spend_revenue,
            voice_note_points=spent_points.get(SpendCategory.VOICE_NOTE.value, 0),
            live_event_points=spent_points.get(SpendCategory.LIVE_EVENT.value, 0),
            total_platform_revenue_ttd=total_revenue,
            total_user_earnings_ttd=user_earnings,
            total_user_payouts_ttd=user_payouts,
            total_platform_withdrawals_ttd=withdrawals,
            available_for_withdrawal_ttd=available,
        )

    def record_platform_withdrawal(
        self, amount_ttd: Decimal, rule: RevenueRule, notes: Optional[str] = None
    ) -> PlatformWithdrawalResponse:
        """플랫폼 출금 요청 - 대기 중 출금을 포함해 출금 가능 금액을 넘을 수 없음"""
        if amount_ttd <= 0:
            raise ValidationError("Withdrawal amount must be positive")

        available = self.compute_revenue(rule).available_for_withdrawal_ttd
        pending = self.withdrawal_repo.sum_pending()
        if amount_ttd > available - pending:
            raise ValidationError(
                "Withdrawal exceeds available platform revenue",
                details={
                    "amount_ttd": str(amount_ttd),
                    "available_ttd": str(available),
                    "pending_withdrawals_ttd": str(pending),
                    "rule": RevenueRule(rule).value,
                },
            )

        with self.unit_of_work("record platform withdrawal"):
            withdrawal = self.withdrawal_repo.add(
                amount_ttd=amount_ttd,
                status=WithdrawalStatus.PENDING.value,
                notes=notes,
            )

        logger.info(f"Platform withdrawal {withdrawal.id} requested: {amount_ttd} TTD")
        return self.withdrawal_repo.to_schema(withdrawal)

    def complete_platform_withdrawal(self, withdrawal_id: int) -> PlatformWithdrawalResponse:
        with self.unit_of_work(f"complete platform withdrawal {withdrawal_id}"):
            withdrawal = self.withdrawal_repo.get(withdrawal_id, for_update=True)
            if withdrawal is None:
                raise NotFoundError(
                    "Withdrawal not found", details={"withdrawal_id": withdrawal_id}
                )
            if withdrawal.status != WithdrawalStatus.PENDING.value:
                raise InvalidTransitionError(
                    f"Withdrawal is already {withdrawal.status}",
                    details={"withdrawal_id": withdrawal_id, "status": withdrawal.status},
                )
            withdrawal.status = WithdrawalStatus.COMPLETED.value
            withdrawal.completed_at = LedgerClock.utcnow()
            self.db.flush()

        logger.info(f"Platform withdrawal {withdrawal_id} completed: {withdrawal.amount_ttd} TTD")
        return self.withdrawal_repo.to_schema(withdrawal)
