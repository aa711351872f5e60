"""
지급(payout) 서비스

지급 가능 수익(confirmed)을 잠금(locked)으로 옮겨 다음 지급 사이클에 예약하고,
지급 완료/취소 시 잠금 포인트를 정리합니다.

지급 상태 전이:
    pending -> processing -> paid
    pending | processing -> cancelled (수익 복원)
    processing -> failed (수익 복원)
"""

import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import (
    BaseAPIException,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from walletapi.core.ledger_rules import minimum_payout_points, next_payout_date
from walletapi.models.earnings import EarningsStatus, Payout, PayoutStatus
from walletapi.models.wallet import TransactionType
from walletapi.repositories.earnings_repository import EarningsRepository, PayoutRepository
from walletapi.repositories.wallet_repository import WalletRepository
from walletapi.schemas.payout import (
    PayoutGenerationResponse,
    PayoutGenerationResult,
    PayoutResponse,
)
from walletapi.schemas.platform import PlatformPricing
from walletapi.services.base_service import BaseLedgerService
from walletapi.services.earnings_service import EarningsService
from walletapi.services.ledger_service import LedgerService
from walletapi.utils.clock import LedgerClock

logger = logging.getLogger(__name__)


class PayoutService(BaseLedgerService):
    """지급 잠금 / 지급 처리 비즈니스 로직"""

    def __init__(
        self, db: Session, settings: Settings, ledger: Optional[LedgerService] = None
    ):
        super().__init__(db, settings)
        self.ledger = ledger or LedgerService(db, settings)
        self.earnings = EarningsService(db, settings, ledger=self.ledger)
        self.wallet_repo = WalletRepository(db)
        self.earnings_repo = EarningsRepository(db)
        self.payout_repo = PayoutRepository(db)

    def lock_payout_eligible_earnings(
        self, user_id: int, as_of: Optional[date] = None
    ) -> Optional[PayoutResponse]:
        """지급 가능 수익 잠금

        성숙 시각이 지난 수익을 먼저 승격한 뒤, 확정 수익이 최소 지급 포인트 이상이면
        전부 잠그고 다음 지급일의 지급을 생성(또는 기존 pending 지급에 추가)합니다.

        Args:
            user_id: 사용자 ID
            as_of: 기준 날짜 (기본 현지 오늘)

        Returns:
            PayoutResponse | None: 최소 지급 포인트 미만이면 None
        """
        as_of = as_of or LedgerClock.local_today()
        pricing = self.ledger.get_pricing()

        with self.unit_of_work(f"lock payout for user {user_id}"):
            self.earnings.mature_due_entries(
                user_id,
                LedgerClock.utcnow(),
                self.settings.EARNINGS_MATURATION_BATCH_SIZE,
            )
            payout, _ = self._lock_for_user(user_id, pricing, as_of)

        if payout is None:
            logger.info(f"User {user_id} below payout minimum, nothing locked")
            return None
        return self.payout_repo.to_schema(payout)

    def _lock_for_user(
        self, user_id: int, pricing: PlatformPricing, as_of: date
    ) -> Tuple[Optional[Payout], bool]:
        """확정 수익 전체 잠금 (flush only)

        Returns:
            (지급, 새로 생성 여부) - 최소 미만이면 (None, False)
        """
        self.wallet_repo.get_or_create(user_id, for_update=True)
        entries = self.earnings_repo.list_confirmed(user_id, for_update=True)
        points = sum(entry.points for entry in entries)
        minimum = minimum_payout_points(pricing)
        if points <= 0 or points < minimum:
            return None, False

        amount_ttd = sum((Decimal(entry.amount_ttd) for entry in entries), Decimal("0.00"))
        scheduled_for = next_payout_date(as_of, self.settings.PAYOUT_DAY_OF_MONTH)

        payout = self.payout_repo.find_open_for_date(user_id, scheduled_for)
        created = payout is None
        if created:
            payout = self.payout_repo.add(
                user_id=user_id,
                points=points,
                amount_ttd=amount_ttd,
                status=PayoutStatus.PENDING.value,
                scheduled_for=scheduled_for,
                locked_points=points,
            )
        else:
            payout.points = payout.points + points
            payout.amount_ttd = payout.amount_ttd + amount_ttd
            payout.locked_points = payout.locked_points + points

        for entry in entries:
            entry.status = EarningsStatus.LOCKED.value
            entry.payout_id = payout.id

        self.ledger.record_transaction(
            user_id,
            TransactionType.PAYOUT_LOCK,
            earnings_delta=-points,
            locked_earnings_delta=points,
            amount_ttd=amount_ttd,
            payout_id=payout.id,
        )
        self.db.flush()

        logger.info(
            f"Locked {points} earnings points ({amount_ttd} TTD) for user {user_id} "
            f"into payout {payout.id} scheduled for {scheduled_for}"
        )
        return payout, created

    def generate_payouts(self, as_of: Optional[date] = None) -> PayoutGenerationResponse:
        """월간 지급 생성 (스케줄러) - 지급일에만 실행 가능"""
        as_of = as_of or LedgerClock.local_today()
        payout_day = self.settings.PAYOUT_DAY_OF_MONTH
        if as_of.day != payout_day:
            raise ConflictError(
                "Payouts can only be generated on the payout day",
                details={"as_of": as_of.isoformat(), "payout_day_of_month": payout_day},
            )

        pricing = self.ledger.get_pricing()
        minimum = minimum_payout_points(pricing)
        user_ids = [
            wallet.user_id for wallet in self.wallet_repo.list_payout_candidates(minimum)
        ]

        results: List[PayoutGenerationResult] = []
        for user_id in user_ids:
            try:
                with self.unit_of_work(f"generate payout for user {user_id}"):
                    self.earnings.mature_due_entries(
                        user_id,
                        LedgerClock.utcnow(),
                        self.settings.EARNINGS_MATURATION_BATCH_SIZE,
                    )
                    payout, created = self._lock_for_user(user_id, pricing, as_of)
            except (BaseAPIException, SQLAlchemyError) as e:
                results.append(
                    PayoutGenerationResult(user_id=user_id, status="error", reason=str(e))
                )
                continue

            if payout is None:
                results.append(
                    PayoutGenerationResult(
                        user_id=user_id, status="skipped", reason="below_minimum"
                    )
                )
            else:
                results.append(
                    PayoutGenerationResult(
                        user_id=user_id,
                        status="created" if created else "updated",
                        payout_id=payout.id,
                    )
                )

        summary = Counter(result.status for result in results)
        logger.info(f"Payout generation for {as_of}: {dict(summary)}")
        return PayoutGenerationResponse(
            scheduled_for=next_payout_date(as_of, payout_day),
            minimum_payout_points=minimum,
            summary={
                status: summary.get(status, 0)
                for status in ("created", "updated", "skipped", "error")
            },
            results=results,
        )

    def _get_payout(self, payout_id: int, allowed: Tuple[PayoutStatus, ...], action: str) -> Payout:
        payout = self.payout_repo.get(payout_id, for_update=True)
        if payout is None:
            raise NotFoundError("Payout not found", details={"payout_id": payout_id})
        if payout.status not in [status.value for status in allowed]:
            raise InvalidTransitionError(
                f"Cannot {action} a {payout.status} payout",
                details={"payout_id": payout_id, "status": payout.status},
            )
        return payout

    def mark_processing(self, payout_id: int) -> PayoutResponse:
        with self.unit_of_work(f"mark payout {payout_id} processing"):
            payout = self._get_payout(payout_id, (PayoutStatus.PENDING,), "process")
            payout.status = PayoutStatus.PROCESSING.value
            self.db.flush()

        logger.info(f"Payout {payout_id} is processing")
        return self.payout_repo.to_schema(payout)

    def mark_paid(self, payout_id: int) -> PayoutResponse:
        """지급 완료 - 잠금 포인트 차감, 수익 항목 paid 처리, payout 거래 기록"""
        with self.unit_of_work(f"mark payout {payout_id} paid"):
            payout = self._get_payout(payout_id, (PayoutStatus.PROCESSING,), "pay")

            self.ledger.record_transaction(
                payout.user_id,
                TransactionType.PAYOUT,
                locked_earnings_delta=-payout.locked_points,
                amount_ttd=payout.amount_ttd,
                payout_id=payout.id,
                metadata={"points": payout.points},
            )
            for entry in self.earnings_repo.list_for_payout(payout.id):
                entry.status = EarningsStatus.PAID.value

            payout.status = PayoutStatus.PAID.value
            payout.processed_at = LedgerClock.utcnow()
            self.db.flush()

        logger.info(
            f"Payout {payout_id} paid: {payout.points} points ({payout.amount_ttd} TTD) "
            f"to user {payout.user_id}"
        )
        return self.payout_repo.to_schema(payout)

    def _release(self, payout: Payout, reason: str) -> None:
        """잠금 해제 - 수익 항목을 confirmed 로 되돌리고 earnings 복원"""
        self.ledger.record_transaction(
            payout.user_id,
            TransactionType.PAYOUT_RELEASE,
            earnings_delta=payout.locked_points,
            locked_earnings_delta=-payout.locked_points,
            amount_ttd=payout.amount_ttd,
            payout_id=payout.id,
            metadata={"reason": reason},
        )
        for entry in self.earnings_repo.list_for_payout(payout.id):
            entry.status = EarningsStatus.CONFIRMED.value
            entry.payout_id = None
        payout.notes = reason
        payout.processed_at = LedgerClock.utcnow()

    def cancel_payout(self, payout_id: int, reason: str) -> PayoutResponse:
        with self.unit_of_work(f"cancel payout {payout_id}"):
            payout = self._get_payout(
                payout_id, (PayoutStatus.PENDING, PayoutStatus.PROCESSING), "cancel"
            )
            self._release(payout, reason)
            payout.status = PayoutStatus.CANCELLED.value
            self.db.flush()

        logger.info(
            f"Payout {payout_id} cancelled, {payout.locked_points} points returned "
            f"to user {payout.user_id}: {reason}"
        )
        return self.payout_repo.to_schema(payout)

    def mark_failed(self, payout_id: int, reason: str) -> PayoutResponse:
        """지급 실패 (송금 실패 등) - 수익 복원"""
        with self.unit_of_work(f"mark payout {payout_id} failed"):
            payout = self._get_payout(payout_id, (PayoutStatus.PROCESSING,), "fail")
            self._release(payout, reason)
            payout.status = PayoutStatus.FAILED.value
            self.db.flush()

        logger.warning(f"Payout {payout_id} failed for user {payout.user_id}: {reason}")
        return self.payout_repo.to_schema(payout)

    def list_payouts(
        self,
        user_id: Optional[int] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PayoutResponse]:
        return self.payout_repo.list_payouts(
            user_id=user_id, status=status, limit=min(limit, 100), offset=offset
        )
