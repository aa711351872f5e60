"""
거래 원장 리포지토리

거래는 추가만 가능(append-only)하며, pending 충전의 상태 전이만 예외적으로
허용됩니다. 잔액 정합성 검증과 수익 집계를 위한 합계 쿼리를 제공합니다.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session

from walletapi.models.wallet import Transaction, TransactionStatus, TransactionType
from walletapi.repositories.base import BaseRepository
from walletapi.schemas.wallet import TransactionResponse


class TransactionRepository(BaseRepository[Transaction, TransactionResponse]):
    def __init__(self, db: Session):
        super().__init__(Transaction, TransactionResponse, db)

    def get_by_ref_id(self, ref_id: str) -> Optional[Transaction]:
        """멱등성 체크용 ref_id 조회"""
        return self.db.query(Transaction).filter(Transaction.ref_id == ref_id).first()

    def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Transaction], int]:
        """사용자 거래 내역 (최신순) + 전체 건수"""
        query = self.db.query(Transaction).filter(Transaction.user_id == user_id)
        total_count = query.count()
        entries = (
            query.order_by(desc(Transaction.id)).limit(limit).offset(offset).all()
        )
        return entries, total_count

    def sum_verified_deltas(self, user_id: int) -> Tuple[int, int, int]:
        """verified 거래의 (points_delta 합, earnings_points_delta 합, 건수)"""
        points, earnings, count = (
            self.db.query(
                func.coalesce(func.sum(Transaction.points_delta), 0),
                func.coalesce(func.sum(Transaction.earnings_points_delta), 0),
                func.count(Transaction.id),
            )
            .filter(
                and_(
                    Transaction.user_id == user_id,
                    Transaction.status == TransactionStatus.VERIFIED.value,
                )
            )
            .one()
        )
        return int(points), int(earnings), int(count)

    def pending_topup_totals(self, user_id: int) -> Tuple[int, int]:
        """검증 대기 중인 충전의 (건수, 예상 포인트 합)"""
        count, points = (
            self.db.query(
                func.count(Transaction.id),
                func.coalesce(func.sum(Transaction.points_delta), 0),
            )
            .filter(
                and_(
                    Transaction.user_id == user_id,
                    Transaction.type == TransactionType.TOP_UP.value,
                    Transaction.status == TransactionStatus.PENDING.value,
                )
            )
            .one()
        )
        return int(count), int(points)

    def find_refund_for(self, spend_transaction_id: int) -> Optional[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(
                and_(
                    Transaction.type == TransactionType.POINT_REFUND.value,
                    Transaction.related_transaction_id == spend_transaction_id,
                )
            )
            .first()
        )

    def _in_range(
        self,
        query,
        start: Optional[datetime],
        end: Optional[datetime],
        column=Transaction.created_at,
    ):
        if start is not None:
            query = query.filter(column >= start)
        if end is not None:
            query = query.filter(column < end)
        return query

    def verified_topups(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Transaction]:
        """검증된 충전 - 기간은 제출 시각이 아닌 검증 시각 기준"""
        query = self.db.query(Transaction).filter(
            and_(
                Transaction.type == TransactionType.TOP_UP.value,
                Transaction.status == TransactionStatus.VERIFIED.value,
            )
        )
        query = self._in_range(query, start, end, Transaction.verified_at)
        return query.order_by(Transaction.id).all()

    def _net_spend_filter(self, categories: Iterable[str]):
        # 환불(point_refund)은 같은 category 로 기록되어 사용분을 상쇄
        return and_(
            Transaction.type.in_(
                [TransactionType.POINT_SPEND.value, TransactionType.POINT_REFUND.value]
            ),
            Transaction.status == TransactionStatus.VERIFIED.value,
            Transaction.category.in_(list(categories)),
        )

    def spent_points_by_category(
        self,
        categories: Iterable[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """사용처별 순사용 포인트 합 (양수, 환불 차감)"""
        query = self.db.query(
            Transaction.category,
            func.coalesce(func.sum(Transaction.points_delta), 0),
        ).filter(self._net_spend_filter(categories))
        rows = self._in_range(query, start, end).group_by(Transaction.category).all()
        return {category: -int(total) for category, total in rows}

    def sum_spend_value_by_category(
        self,
        categories: Iterable[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Tuple[int, Optional[Decimal]]]:
        """(사용 포인트, 사용 시점 user_value_per_point) 목록 - 환불은 음수"""
        query = self.db.query(
            Transaction.points_delta, Transaction.user_value_per_point_at_time
        ).filter(self._net_spend_filter(categories))
        return [
            (-int(points), value_at_time)
            for points, value_at_time in self._in_range(query, start, end).all()
        ]
