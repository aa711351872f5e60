"""
지갑 거래 적용 서비스

지갑 잔액은 거래(transaction)를 통해서만 변경됩니다. 모든 잔액 변경은
지갑 행 잠금(SELECT ... FOR UPDATE) -> 부호 검증 -> 음수 잔액 검사 -> 거래 추가
-> 지갑 갱신 순서로 하나의 DB 트랜잭션 안에서 수행됩니다.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from walletapi.core.ledger_rules import (
    is_payout_eligible,
    minimum_payout_points,
    next_payout_date,
    next_topup_due_date,
    points_for_amount,
    points_value_ttd,
    validate_direct_transaction_type,
    validate_transaction_shape,
)
from walletapi.models.wallet import (
    SpendCategory,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from walletapi.repositories.earnings_repository import EarningsRepository
from walletapi.repositories.platform_repository import PlatformSettingsRepository
from walletapi.repositories.transaction_repository import TransactionRepository
from walletapi.repositories.wallet_repository import WalletRepository
from walletapi.schemas.platform import PlatformPricing
from walletapi.schemas.wallet import (
    TopupReminder,
    TopupReminderScanResponse,
    TransactionListResponse,
    TransactionResponse,
    WalletIntegrityResponse,
    WalletSummaryResponse,
)
from walletapi.services.base_service import BaseLedgerService
from walletapi.utils.clock import LedgerClock

logger = logging.getLogger(__name__)


class LedgerService(BaseLedgerService):
    """지갑 / 거래 원장 비즈니스 로직"""

    def __init__(self, db: Session, settings: Settings):
        super().__init__(db, settings)
        self.wallet_repo = WalletRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.platform_repo = PlatformSettingsRepository(db)
        self.earnings_repo = EarningsRepository(db)

    def get_pricing(self) -> PlatformPricing:
        return self.platform_repo.get_pricing()

    # ------------------------------------------------------------------
    # 거래 적용 (flush only)
    # ------------------------------------------------------------------

    def record_transaction(
        self,
        user_id: int,
        transaction_type: TransactionType,
        points_delta: int = 0,
        earnings_delta: int = 0,
        *,
        locked_earnings_delta: int = 0,
        status: TransactionStatus = TransactionStatus.VERIFIED,
        amount_ttd: Optional[Decimal] = None,
        metadata: Optional[dict] = None,
        category: Optional[str] = None,
        recipient_user_id: Optional[int] = None,
        sender_user_id: Optional[int] = None,
        ledger_entry_id: Optional[int] = None,
        payout_id: Optional[int] = None,
        related_transaction_id: Optional[int] = None,
        buy_price_per_point_at_time: Optional[Decimal] = None,
        user_value_per_point_at_time: Optional[Decimal] = None,
        ref_id: Optional[str] = None,
    ) -> Transaction:
        """거래 1건 추가 + 지갑 갱신 (commit 하지 않음)

        다른 서비스가 자신의 작업 단위 안에서 호출합니다. pending 거래는 지갑에
        반영되지 않습니다.

        Raises:
            ValidationError: 거래 유형과 delta 부호가 맞지 않는 경우
            InsufficientBalanceError: 적용 후 잔액이 음수가 되는 경우
        """
        transaction_type = TransactionType(transaction_type)
        status = TransactionStatus(status)
        validate_transaction_shape(transaction_type, points_delta, earnings_delta)

        wallet = self.wallet_repo.get_or_create(user_id, for_update=True)

        if status == TransactionStatus.VERIFIED:
            new_points = wallet.points_balance + points_delta
            new_earnings = wallet.earnings_points + earnings_delta
            new_locked = wallet.locked_earnings_points + locked_earnings_delta
            if new_points < 0 or new_earnings < 0 or new_locked < 0:
                raise InsufficientBalanceError(
                    f"Insufficient balance for {transaction_type.value}",
                    details={
                        "user_id": user_id,
                        "points_balance": wallet.points_balance,
                        "earnings_points": wallet.earnings_points,
                        "locked_earnings_points": wallet.locked_earnings_points,
                        "points_delta": points_delta,
                        "earnings_points_delta": earnings_delta,
                    },
                )

        transaction = self.transaction_repo.add(
            user_id=user_id,
            type=transaction_type.value,
            status=status.value,
            amount_ttd=amount_ttd,
            points_delta=points_delta,
            earnings_points_delta=earnings_delta,
            category=category,
            recipient_user_id=recipient_user_id,
            sender_user_id=sender_user_id,
            ledger_entry_id=ledger_entry_id,
            payout_id=payout_id,
            related_transaction_id=related_transaction_id,
            buy_price_per_point_at_time=buy_price_per_point_at_time,
            user_value_per_point_at_time=user_value_per_point_at_time,
            ref_id=ref_id,
            metadata_json=metadata,
            verified_at=(
                LedgerClock.utcnow() if status == TransactionStatus.VERIFIED else None
            ),
        )

        if status == TransactionStatus.VERIFIED:
            wallet.points_balance = new_points
            wallet.earnings_points = new_earnings
            wallet.locked_earnings_points = new_locked
            self.db.flush()

        return transaction

    def apply_transaction(
        self,
        user_id: int,
        transaction_type: TransactionType,
        points_delta: int = 0,
        earnings_delta: int = 0,
        amount_ttd: Optional[Decimal] = None,
        metadata: Optional[dict] = None,
        *,
        ref_id: Optional[str] = None,
        **fields,
    ) -> TransactionResponse:
        """거래 직접 적용 (단독 작업 단위)

        point_spend / point_refund 만 허용됩니다. 충전은 submit_topup -> verify_topup,
        수익/지급/추천 보너스는 각 서비스가 부수 원장과 함께 기록합니다.

        Args:
            user_id: 사용자 ID
            transaction_type: 거래 유형
            points_delta: 포인트 변화량
            earnings_delta: 수익 포인트 변화량
            amount_ttd: 금액
            metadata: 부가 정보
            ref_id: 멱등성 키 - 이미 처리된 키면 기존 거래를 그대로 반환

        Returns:
            TransactionResponse: 생성된(또는 기존) 거래

        Raises:
            ValidationError: 직접 적용할 수 없는 유형이거나 부호가 맞지 않는 경우
        """
        validate_direct_transaction_type(transaction_type)
        return self._apply(
            user_id,
            transaction_type,
            points_delta,
            earnings_delta,
            amount_ttd=amount_ttd,
            metadata=metadata,
            ref_id=ref_id,
            **fields,
        )

    def _apply(
        self,
        user_id: int,
        transaction_type: TransactionType,
        points_delta: int = 0,
        earnings_delta: int = 0,
        *,
        ref_id: Optional[str] = None,
        **fields,
    ) -> TransactionResponse:
        if ref_id:
            existing = self._existing_for_ref(user_id, ref_id)
            if existing is not None:
                return existing

        try:
            with self.unit_of_work(
                f"apply {TransactionType(transaction_type).value} for user {user_id}"
            ):
                transaction = self.record_transaction(
                    user_id,
                    transaction_type,
                    points_delta,
                    earnings_delta,
                    ref_id=ref_id,
                    **fields,
                )
        except IntegrityError:
            # 같은 ref_id 를 가진 동시 요청이 먼저 commit 됨
            if ref_id:
                existing = self._existing_for_ref(user_id, ref_id)
                if existing is not None:
                    return existing
            raise

        logger.info(
            f"Applied {transaction.type} ({transaction.status}) for user {user_id}: "
            f"points {points_delta:+d}, earnings {earnings_delta:+d}"
        )
        return self.transaction_repo.to_schema(transaction)

    def _existing_for_ref(self, user_id: int, ref_id: str) -> Optional[TransactionResponse]:
        existing = self.transaction_repo.get_by_ref_id(ref_id)
        if existing is None:
            return None
        if existing.user_id != user_id:
            raise ConflictError(
                "ref_id already used by another user", details={"ref_id": ref_id}
            )
        logger.info(f"Duplicate ref_id {ref_id} for user {user_id}, returning existing")
        return self.transaction_repo.to_schema(existing)

    # ------------------------------------------------------------------
    # 충전
    # ------------------------------------------------------------------

    def submit_topup(
        self, user_id: int, amount_ttd: Decimal, ref_id: Optional[str] = None
    ) -> TransactionResponse:
        """충전 요청 - 검증 대기(pending) 거래 생성

        예상 포인트는 요청 시점의 가격으로 계산되어 거래에 고정되며, 검증 시
        그대로 지급됩니다. 지갑 잔액은 변경되지 않습니다.
        """
        pricing = self.get_pricing()
        points = points_for_amount(amount_ttd, pricing)
        if points <= 0:
            raise ValidationError(
                "Top-up amount is below the price of one point",
                details={
                    "amount_ttd": str(amount_ttd),
                    "buy_price_per_point": str(pricing.buy_price_per_point),
                },
            )

        return self._apply(
            user_id,
            TransactionType.TOP_UP,
            points_delta=points,
            amount_ttd=Decimal(amount_ttd),
            ref_id=ref_id,
            status=TransactionStatus.PENDING,
            buy_price_per_point_at_time=pricing.buy_price_per_point,
            user_value_per_point_at_time=pricing.user_value_per_point,
        )

    def _get_pending_topup(self, transaction_id: int) -> Transaction:
        transaction = self.transaction_repo.get(transaction_id, for_update=True)
        if transaction is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_id": transaction_id}
            )
        if transaction.type != TransactionType.TOP_UP.value:
            raise ValidationError(
                "Transaction is not a top-up",
                details={"transaction_id": transaction_id, "type": transaction.type},
            )
        if transaction.status != TransactionStatus.PENDING.value:
            raise InvalidTransitionError(
                f"Top-up is already {transaction.status}",
                details={"transaction_id": transaction_id, "status": transaction.status},
            )
        return transaction

    def verify_topup(self, transaction_id: int) -> TransactionResponse:
        """충전 검증 - pending -> verified, 예상 포인트 지급

        의무 충전 금액 이상이면 다음 의무 충전일을 갱신하고, 검증이 commit 된
        이후 추천 보너스를 처리합니다 (보너스 처리 실패는 충전 결과에 영향 없음).
        """
        with self.unit_of_work(f"verify top-up {transaction_id}"):
            transaction = self._get_pending_topup(transaction_id)
            pricing = self.get_pricing()
            wallet = self.wallet_repo.get_or_create(transaction.user_id, for_update=True)

            now = LedgerClock.utcnow()
            transaction.status = TransactionStatus.VERIFIED.value
            transaction.verified_at = now
            wallet.points_balance = wallet.points_balance + transaction.points_delta

            wallet.last_topup_at = now
            if (
                pricing.mandatory_topup_ttd > 0
                and transaction.amount_ttd is not None
                and transaction.amount_ttd >= pricing.mandatory_topup_ttd
            ):
                wallet.last_mandatory_topup_at = now
                wallet.next_topup_due_on = next_topup_due_date(
                    LedgerClock.local_today(),
                    self.settings.MANDATORY_TOPUP_PERIOD_MONTHS,
                )
            self.db.flush()

        logger.info(
            f"Verified top-up {transaction_id} for user {transaction.user_id}: "
            f"+{transaction.points_delta} points"
        )

        self._process_referral(transaction.user_id, transaction.id)
        return self.transaction_repo.to_schema(transaction)

    def _process_referral(self, user_id: int, transaction_id: int) -> None:
        from walletapi.services.referral_service import ReferralService

        try:
            ReferralService(self.db, self.settings, ledger=self).process_topup(
                user_id, transaction_id
            )
        except Exception as e:
            # 충전 검증은 이미 commit 됨
            self.db.rollback()
            logger.error(
                f"Referral processing failed for top-up {transaction_id} "
                f"(user {user_id}): {str(e)}"
            )

    def reject_topup(self, transaction_id: int, reason: str) -> TransactionResponse:
        """충전 거절 - pending -> rejected, 잔액 변화 없음"""
        with self.unit_of_work(f"reject top-up {transaction_id}"):
            transaction = self._get_pending_topup(transaction_id)
            transaction.status = TransactionStatus.REJECTED.value
            self.db.flush()

        logger.info(
            f"Rejected top-up {transaction_id} for user {transaction.user_id}: {reason}"
        )
        return self.transaction_repo.to_schema(transaction)

    # ------------------------------------------------------------------
    # 포인트 사용 / 환불
    # ------------------------------------------------------------------

    def spend_points(
        self,
        user_id: int,
        points: int,
        category: SpendCategory,
        recipient_user_id: Optional[int] = None,
        ref_id: Optional[str] = None,
    ) -> TransactionResponse:
        """포인트 사용 - 잔액 부족 시 InsufficientBalanceError (아무것도 기록되지 않음)"""
        if points <= 0:
            raise ValidationError("Spend points must be positive", details={"points": points})

        pricing = self.get_pricing()
        return self.apply_transaction(
            user_id,
            TransactionType.POINT_SPEND,
            points_delta=-points,
            ref_id=ref_id,
            category=SpendCategory(category).value,
            recipient_user_id=recipient_user_id,
            buy_price_per_point_at_time=pricing.buy_price_per_point,
            user_value_per_point_at_time=pricing.user_value_per_point,
        )

    def refund_spend(self, transaction_id: int, reason: str) -> TransactionResponse:
        """포인트 사용 환불 - 사용 1건당 최대 1회"""
        with self.unit_of_work(f"refund spend {transaction_id}"):
            spend = self.transaction_repo.get(transaction_id, for_update=True)
            if spend is None:
                raise NotFoundError(
                    "Transaction not found", details={"transaction_id": transaction_id}
                )
            if spend.type != TransactionType.POINT_SPEND.value:
                raise ValidationError(
                    "Transaction is not a point spend",
                    details={"transaction_id": transaction_id, "type": spend.type},
                )
            if spend.status != TransactionStatus.VERIFIED.value:
                raise InvalidTransitionError(
                    "Only verified spends can be refunded",
                    details={"transaction_id": transaction_id, "status": spend.status},
                )
            if self.transaction_repo.find_refund_for(spend.id) is not None:
                raise InvalidTransitionError(
                    "Spend already refunded", details={"transaction_id": transaction_id}
                )

            refund = self.record_transaction(
                spend.user_id,
                TransactionType.POINT_REFUND,
                points_delta=-spend.points_delta,
                category=spend.category,
                recipient_user_id=spend.recipient_user_id,
                related_transaction_id=spend.id,
                buy_price_per_point_at_time=spend.buy_price_per_point_at_time,
                user_value_per_point_at_time=spend.user_value_per_point_at_time,
                metadata={"reason": reason},
            )

        logger.info(
            f"Refunded spend {transaction_id} for user {spend.user_id}: "
            f"+{refund.points_delta} points"
        )
        return self.transaction_repo.to_schema(refund)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_wallet_summary(self, user_id: int) -> WalletSummaryResponse:
        """지갑 요약 - 예상 포인트는 실제 잔액과 분리하여 제공"""
        pricing = self.get_pricing()
        wallet = self.wallet_repo.get_response(user_id)
        pending_count, projected_points = self.transaction_repo.pending_topup_totals(
            user_id
        )

        return WalletSummaryResponse(
            wallet=wallet,
            projected_points=projected_points,
            pending_topup_count=pending_count,
            pending_earnings_points=self.earnings_repo.sum_pending_points(user_id),
            minimum_payout_points=minimum_payout_points(pricing),
            is_payout_eligible=is_payout_eligible(wallet.earnings_points, pricing),
            earnings_value_ttd=points_value_ttd(
                wallet.earnings_points, pricing.user_value_per_point
            ),
            next_payout_date=next_payout_date(
                LedgerClock.local_today(), self.settings.PAYOUT_DAY_OF_MONTH
            ),
        )

    def get_transactions(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> TransactionListResponse:
        """사용자 거래 내역 (최신순)

        Args:
            user_id: 사용자 ID
            limit: 페이지 크기 (최대 100)
            offset: 오프셋
        """
        if limit > 100:
            limit = 100

        entries, total_count = self.transaction_repo.list_for_user(
            user_id, limit=limit, offset=offset
        )
        return TransactionListResponse(
            wallet=self.wallet_repo.get_response(user_id),
            entries=[self.transaction_repo.to_schema(entry) for entry in entries],
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    def verify_wallet_integrity(self, user_id: int) -> WalletIntegrityResponse:
        """지갑 잔액과 verified 거래 합계 비교"""
        wallet = self.wallet_repo.get_response(user_id)
        points_sum, earnings_sum, count = self.transaction_repo.sum_verified_deltas(
            user_id
        )

        is_valid = (
            wallet.points_balance == points_sum and wallet.earnings_points == earnings_sum
        )
        if not is_valid:
            logger.warning(
                f"Wallet integrity mismatch for user {user_id}: "
                f"points {wallet.points_balance} != {points_sum} or "
                f"earnings {wallet.earnings_points} != {earnings_sum}"
            )

        return WalletIntegrityResponse(
            status="OK" if is_valid else "MISMATCH",
            user_id=user_id,
            recorded_points_balance=wallet.points_balance,
            calculated_points_balance=points_sum,
            recorded_earnings_points=wallet.earnings_points,
            calculated_earnings_points=earnings_sum,
            transaction_count=count,
            verified_at=LedgerClock.utcnow(),
        )

    # ------------------------------------------------------------------
    # 의무 충전 알림
    # ------------------------------------------------------------------

    def find_topup_reminders(
        self, as_of: Optional[date] = None
    ) -> TopupReminderScanResponse:
        """의무 충전 알림 대상 조회 (발송은 호출 측 책임)

        - due_soon: 마감 TOPUP_REMINDER_LEAD_DAYS 일 전
        - due_today: 마감 당일
        - overdue: 마감 경과, TOPUP_OVERDUE_REMINDER_INTERVAL_DAYS 마다 재알림
        """
        as_of = as_of or LedgerClock.local_today()
        lead_days = self.settings.TOPUP_REMINDER_LEAD_DAYS
        interval = self.settings.TOPUP_OVERDUE_REMINDER_INTERVAL_DAYS

        reminders: List[TopupReminder] = []
        with self.unit_of_work("scan top-up reminders"):
            wallets = self.wallet_repo.list_with_topup_due_date()
            now = LedgerClock.utcnow()
            for wallet in wallets:
                days_until = (wallet.next_topup_due_on - as_of).days
                last_sent: Optional[date] = (
                    LedgerClock.local_date(wallet.last_topup_reminder_at)
                    if wallet.last_topup_reminder_at
                    else None
                )

                if days_until == lead_days:
                    reminder_type, overdue_days = "due_soon", 0
                elif days_until == 0:
                    reminder_type, overdue_days = "due_today", 0
                elif days_until < 0:
                    reminder_type, overdue_days = "overdue", -days_until
                    if last_sent is not None and (as_of - last_sent).days < interval:
                        continue
                else:
                    continue

                if last_sent == as_of:
                    continue

                wallet.last_topup_reminder_at = now
                reminders.append(
                    TopupReminder(
                        user_id=wallet.user_id,
                        next_topup_due_on=wallet.next_topup_due_on,
                        reminder_type=reminder_type,
                        overdue_days=overdue_days,
                    )
                )
            self.db.flush()

        logger.info(
            f"Top-up reminder scan: {len(wallets)} wallets, {len(reminders)} reminders"
        )
        return TopupReminderScanResponse(scanned=len(wallets), reminders=reminders)
