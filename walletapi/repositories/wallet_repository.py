"""
지갑 리포지토리

지갑 행은 사용자당 하나이며 처음 필요할 때 생성됩니다. 잔액을 변경하는 모든
작업은 get_or_create(for_update=True) 로 행 잠금을 먼저 획득합니다.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from walletapi.models.wallet import Wallet
from walletapi.repositories.base import BaseRepository
from walletapi.schemas.wallet import WalletResponse


class WalletRepository(BaseRepository[Wallet, WalletResponse]):
    def __init__(self, db: Session):
        super().__init__(Wallet, WalletResponse, db)

    def get_by_user_id(self, user_id: int, for_update: bool = False) -> Optional[Wallet]:
        query = self.db.query(Wallet).filter(Wallet.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_or_create(self, user_id: int, for_update: bool = True) -> Wallet:
        """지갑 조회, 없으면 생성

        동시 생성 경합은 user_id 유니크 제약 + savepoint 로 처리합니다.
        """
        wallet = self.get_by_user_id(user_id, for_update=for_update)
        if wallet is not None:
            return wallet

        try:
            with self.db.begin_nested():
                wallet = Wallet(
                    user_id=user_id,
                    points_balance=0,
                    earnings_points=0,
                    locked_earnings_points=0,
                )
                self.db.add(wallet)
                self.db.flush()
        except IntegrityError:
            # 다른 요청이 먼저 생성함
            wallet = self.get_by_user_id(user_id, for_update=for_update)
            if wallet is None:
                raise
        return wallet

    def get_response(self, user_id: int) -> WalletResponse:
        """지갑 응답 - 지갑이 없으면 0 잔액으로 응답"""
        wallet = self.get_by_user_id(user_id)
        if wallet is None:
            return WalletResponse(
                user_id=user_id,
                points_balance=0,
                earnings_points=0,
                locked_earnings_points=0,
            )
        return self.to_schema(wallet)

    def list_payout_candidates(self, minimum_points: int) -> List[Wallet]:
        """확정 수익이 최소 지급 포인트 이상인 지갑"""
        return (
            self.db.query(Wallet)
            .filter(Wallet.earnings_points >= max(minimum_points, 1))
            .order_by(Wallet.user_id)
            .all()
        )

    def list_with_topup_due_date(self) -> List[Wallet]:
        return (
            self.db.query(Wallet)
            .filter(Wallet.next_topup_due_on.isnot(None))
            .order_by(Wallet.user_id)
            .all()
        )
