"""
수익 적립 / 성숙(maturation) 서비스

수익 항목은 pending 상태로 적립된 뒤 available_at 이 지나면 confirmed 로 승격되어
지갑의 earnings_points 에 반영됩니다. 승격은 조건부 UPDATE 로 수행되므로 같은
항목이 두 번 반영되지 않습니다.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import (
    BaseAPIException,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from walletapi.core.ledger_rules import points_value_ttd
from walletapi.models.earnings import (
    EarningsSourceType,
    EarningsStatus,
    WalletEarningsLedger,
)
from walletapi.models.wallet import TransactionType
from walletapi.repositories.earnings_repository import EarningsRepository
from walletapi.schemas.earnings import (
    EarningsEntryResponse,
    MaturationResponse,
    MaturationSweepResponse,
)
from walletapi.services.base_service import BaseLedgerService
from walletapi.services.ledger_service import LedgerService
from walletapi.utils.clock import LedgerClock

logger = logging.getLogger(__name__)


class EarningsService(BaseLedgerService):
    """수익 원장 비즈니스 로직"""

    def __init__(
        self, db: Session, settings: Settings, ledger: Optional[LedgerService] = None
    ):
        super().__init__(db, settings)
        self.earnings_repo = EarningsRepository(db)
        self.ledger = ledger or LedgerService(db, settings)

    def credit_earnings(
        self,
        user_id: int,
        points: int,
        source_type: EarningsSourceType,
        source_id: Optional[str] = None,
        hold_seconds: int = 0,
        metadata: Optional[dict] = None,
    ) -> EarningsEntryResponse:
        """수익 적립

        Args:
            user_id: 수익을 받는 사용자
            points: 적립 포인트 (양수)
            source_type: 수익 원천
            source_id: 원천 ID (부스트 ID 등)
            hold_seconds: 성숙 대기 시간, 0 이하이면 즉시 confirmed
            metadata: 부가 정보

        Returns:
            EarningsEntryResponse: 생성된 수익 항목
        """
        if points <= 0:
            raise ValidationError("Earnings points must be positive", details={"points": points})

        pricing = self.ledger.get_pricing()
        with self.unit_of_work(f"credit earnings for user {user_id}"):
            entry = self.create_entry(
                user_id,
                points,
                EarningsSourceType(source_type),
                source_id=source_id,
                hold_seconds=hold_seconds,
                metadata=metadata,
                amount_ttd=points_value_ttd(points, pricing.user_value_per_point),
            )

        logger.info(
            f"Credited {points} earnings points ({entry.status}) to user {user_id} "
            f"from {entry.source_type}"
        )
        return self.earnings_repo.to_schema(entry)

    def create_entry(
        self,
        user_id: int,
        points: int,
        source_type: EarningsSourceType,
        *,
        amount_ttd,
        source_id: Optional[str] = None,
        hold_seconds: int = 0,
        metadata: Optional[dict] = None,
    ) -> WalletEarningsLedger:
        """수익 항목 생성 (flush only) - 즉시 확정이면 earning_credit 거래도 추가"""
        now = LedgerClock.utcnow()
        confirmed = hold_seconds <= 0
        entry = self.earnings_repo.add(
            user_id=user_id,
            source_type=source_type.value,
            source_id=source_id,
            points=points,
            amount_ttd=amount_ttd,
            status=(EarningsStatus.CONFIRMED if confirmed else EarningsStatus.PENDING).value,
            available_at=now if confirmed else now + timedelta(seconds=hold_seconds),
            metadata_json=metadata,
        )
        if confirmed:
            self._credit_entry(entry)
        return entry

    def _credit_entry(self, entry: WalletEarningsLedger) -> None:
        self.ledger.record_transaction(
            entry.user_id,
            TransactionType.EARNING_CREDIT,
            earnings_delta=entry.points,
            amount_ttd=entry.amount_ttd,
            ledger_entry_id=entry.id,
        )

    def mature_due_entries(
        self, user_id: int, as_of: datetime, limit: int
    ) -> Tuple[int, int]:
        """성숙 시각이 지난 pending 항목 승격 (flush only)

        Returns:
            (승격된 항목 수, 승격된 포인트 합)
        """
        matured_count = 0
        matured_points = 0
        for entry in self.earnings_repo.list_due_pending(user_id, as_of, limit):
            # 다른 스윕이 먼저 승격한 항목은 건너뜀
            if not self.earnings_repo.confirm_if_pending(entry.id):
                continue
            self._credit_entry(entry)
            matured_count += 1
            matured_points += entry.points
        return matured_count, matured_points

    def mature_earnings(
        self,
        user_id: int,
        limit: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> MaturationResponse:
        """사용자 수익 성숙 처리 (멱등)

        Args:
            user_id: 사용자 ID
            limit: 1회 처리 한도 (기본 EARNINGS_MATURATION_BATCH_SIZE)
            as_of: 기준 시각 (기본 현재)
        """
        limit = limit or self.settings.EARNINGS_MATURATION_BATCH_SIZE
        as_of = LedgerClock.to_utc(as_of) or LedgerClock.utcnow()

        with self.unit_of_work(f"mature earnings for user {user_id}"):
            matured_count, matured_points = self.mature_due_entries(user_id, as_of, limit)

        if matured_count:
            logger.info(
                f"Matured {matured_count} entries ({matured_points} points) for user {user_id}"
            )
        return MaturationResponse(
            user_id=user_id, matured_count=matured_count, matured_points=matured_points
        )

    def mature_all_due(
        self, limit_per_user: Optional[int] = None, as_of: Optional[datetime] = None
    ) -> MaturationSweepResponse:
        """전체 사용자 성숙 스윕 (스케줄러)

        사용자별로 독립된 작업 단위로 처리하며, 일시적인 DB 오류(OperationalError)는
        지수 백오프로 재시도합니다.
        """
        as_of = LedgerClock.to_utc(as_of) or LedgerClock.utcnow()
        max_attempts = max(1, self.settings.EARNINGS_MATURATION_RETRY_ATTEMPTS)
        base_backoff = self.settings.EARNINGS_MATURATION_RETRY_BACKOFF_SECONDS

        user_ids = self.earnings_repo.users_with_due_pending(as_of)
        matured_count = 0
        matured_points = 0
        failed_user_ids: List[int] = []

        for user_id in user_ids:
            attempt = 0
            while True:
                attempt += 1
                try:
                    result = self.mature_earnings(user_id, limit_per_user, as_of)
                    matured_count += result.matured_count
                    matured_points += result.matured_points
                    break
                except OperationalError as e:
                    if attempt >= max_attempts:
                        logger.error(
                            f"Maturation failed for user {user_id} after {attempt} attempts: {e}"
                        )
                        failed_user_ids.append(user_id)
                        break
                    backoff = base_backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"DB error maturing user {user_id} "
                        f"(retry {attempt}/{max_attempts - 1}), retrying in {backoff}s: {e}"
                    )
                    time.sleep(backoff)
                except (BaseAPIException, SQLAlchemyError) as e:
                    logger.error(f"Maturation failed for user {user_id}: {str(e)}")
                    failed_user_ids.append(user_id)
                    break

        logger.info(
            f"Maturation sweep: {len(user_ids)} users, {matured_count} entries, "
            f"{matured_points} points, {len(failed_user_ids)} failed"
        )
        return MaturationSweepResponse(
            users_processed=len(user_ids),
            matured_count=matured_count,
            matured_points=matured_points,
            failed_user_ids=failed_user_ids,
        )

    def reverse_entry(self, entry_id: int, reason: str) -> EarningsEntryResponse:
        """수익 항목 취소

        - pending: reversed 로 변경 (지갑 변화 없음)
        - confirmed: reversed 로 변경 + earning_reversal 거래로 수익 차감
        - locked / paid / reversed: InvalidTransitionError
        """
        with self.unit_of_work(f"reverse earnings entry {entry_id}"):
            entry = self.earnings_repo.get(entry_id, for_update=True)
            if entry is None:
                raise NotFoundError(
                    "Earnings entry not found", details={"entry_id": entry_id}
                )

            previous_status = entry.status
            if previous_status not in (
                EarningsStatus.PENDING.value,
                EarningsStatus.CONFIRMED.value,
            ):
                raise InvalidTransitionError(
                    f"Cannot reverse {previous_status} earnings entry",
                    details={"entry_id": entry_id, "status": previous_status},
                )

            entry.status = EarningsStatus.REVERSED.value
            entry.metadata_json = {**(entry.metadata_json or {}), "reversal_reason": reason}

            if previous_status == EarningsStatus.CONFIRMED.value:
                self.ledger.record_transaction(
                    entry.user_id,
                    TransactionType.EARNING_REVERSAL,
                    earnings_delta=-entry.points,
                    amount_ttd=entry.amount_ttd,
                    ledger_entry_id=entry.id,
                    metadata={"reason": reason},
                )
            self.db.flush()

        logger.info(
            f"Reversed {previous_status} earnings entry {entry_id} "
            f"({entry.points} points) for user {entry.user_id}: {reason}"
        )
        return self.earnings_repo.to_schema(entry)

    def list_entries(
        self, user_id: int, status: Optional[EarningsStatus] = None
    ) -> List[EarningsEntryResponse]:
        return self.earnings_repo.list_for_user(user_id, status)
