"""
수익 원장 / 지급 리포지토리

성숙(maturation) 처리는 조건부 UPDATE(`WHERE status = 'pending'`)로 항목을
승격하여, 동시에 실행된 두 스윕이 같은 항목을 중복 확정하지 않도록 합니다.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from walletapi.models.earnings import (
    EarningsStatus,
    Payout,
    PayoutStatus,
    WalletEarningsLedger,
)
from walletapi.repositories.base import BaseRepository
from walletapi.schemas.earnings import EarningsEntryResponse
from walletapi.schemas.payout import PayoutResponse


class EarningsRepository(BaseRepository[WalletEarningsLedger, EarningsEntryResponse]):
    def __init__(self, db: Session):
        super().__init__(WalletEarningsLedger, EarningsEntryResponse, db)

    def list_due_pending(
        self, user_id: int, as_of: datetime, limit: int
    ) -> List[WalletEarningsLedger]:
        """성숙 시각이 지난 pending 항목 (오래된 순, 최대 limit 건)"""
        return (
            self.db.query(WalletEarningsLedger)
            .filter(
                and_(
                    WalletEarningsLedger.user_id == user_id,
                    WalletEarningsLedger.status == EarningsStatus.PENDING.value,
                    WalletEarningsLedger.available_at <= as_of,
                )
            )
            .order_by(WalletEarningsLedger.available_at, WalletEarningsLedger.id)
            .limit(limit)
            .all()
        )

    def confirm_if_pending(self, entry_id: int) -> bool:
        """pending -> confirmed 조건부 승격 (compare-and-swap)

        Returns:
            bool: 이 호출이 승격에 성공했으면 True
        """
        updated = (
            self.db.query(WalletEarningsLedger)
            .filter(
                and_(
                    WalletEarningsLedger.id == entry_id,
                    WalletEarningsLedger.status == EarningsStatus.PENDING.value,
                )
            )
            .update(
                {WalletEarningsLedger.status: EarningsStatus.CONFIRMED.value},
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def users_with_due_pending(self, as_of: datetime) -> List[int]:
        rows = (
            self.db.query(WalletEarningsLedger.user_id)
            .filter(
                and_(
                    WalletEarningsLedger.status == EarningsStatus.PENDING.value,
                    WalletEarningsLedger.available_at <= as_of,
                )
            )
            .distinct()
            .order_by(WalletEarningsLedger.user_id)
            .all()
        )
        return [user_id for (user_id,) in rows]

    def list_confirmed(self, user_id: int, for_update: bool = False) -> List[WalletEarningsLedger]:
        query = (
            self.db.query(WalletEarningsLedger)
            .filter(
                and_(
                    WalletEarningsLedger.user_id == user_id,
                    WalletEarningsLedger.status == EarningsStatus.CONFIRMED.value,
                )
            )
            .order_by(WalletEarningsLedger.available_at, WalletEarningsLedger.id)
        )
        if for_update:
            query = query.with_for_update()
        return query.all()

    def list_for_payout(self, payout_id: int) -> List[WalletEarningsLedger]:
        return (
            self.db.query(WalletEarningsLedger)
            .filter(WalletEarningsLedger.payout_id == payout_id)
            .order_by(WalletEarningsLedger.id)
            .all()
        )

    def list_for_user(
        self, user_id: int, status: Optional[EarningsStatus] = None
    ) -> List[EarningsEntryResponse]:
        return self.find_all(
            filters={"user_id": user_id, "status": status.value if status else None},
            order_by="id",
        )

    def sum_pending_points(self, user_id: int) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(WalletEarningsLedger.points), 0))
            .filter(
                and_(
                    WalletEarningsLedger.user_id == user_id,
                    WalletEarningsLedger.status == EarningsStatus.PENDING.value,
                )
            )
            .scalar()
        )
        return int(total or 0)

    def sum_outstanding_amount(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Decimal:
        """사용자에게 지급해야 할 수익 합계 (paid, reversed 제외)"""
        query = self.db.query(
            func.coalesce(func.sum(WalletEarningsLedger.amount_ttd), 0)
        ).filter(
            WalletEarningsLedger.status.notin_(
                [EarningsStatus.PAID.value, EarningsStatus.REVERSED.value]
            )
        )
        if start is not None:
            query = query.filter(WalletEarningsLedger.created_at >= start)
        if end is not None:
            query = query.filter(WalletEarningsLedger.created_at < end)
        return Decimal(str(query.scalar() or 0))


class PayoutRepository(BaseRepository[Payout, PayoutResponse]):
    def __init__(self, db: Session):
        super().__init__(Payout, PayoutResponse, db)

    def find_open_for_date(
        self, user_id: int, scheduled_for: date, for_update: bool = True
    ) -> Optional[Payout]:
        """같은 지급일의 pending 지급 (있으면 금액을 추가)"""
        query = self.db.query(Payout).filter(
            and_(
                Payout.user_id == user_id,
                Payout.scheduled_for == scheduled_for,
                Payout.status == PayoutStatus.PENDING.value,
            )
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def sum_paid_amount(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Decimal:
        """이미 사용자에게 지급 완료된 금액 합계 (지급 완료 시각 기준)"""
        query = self.db.query(func.coalesce(func.sum(Payout.amount_ttd), 0)).filter(
            Payout.status == PayoutStatus.PAID.value
        )
        if start is not None:
            query = query.filter(Payout.processed_at >= start)
        if end is not None:
            query = query.filter(Payout.processed_at < end)
        return Decimal(str(query.scalar() or 0))

    def list_payouts(
        self,
        user_id: Optional[int] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PayoutResponse]:
        return self.find_all(
            filters={"user_id": user_id, "status": status.value if status else None},
            order_by="id",
            limit=limit,
            offset=offset,
        )
