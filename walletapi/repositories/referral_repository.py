from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from walletapi.models.referral import Referral, ReferralTopup
from walletapi.repositories.base import BaseRepository
from walletapi.schemas.referral import ReferralResponse, ReferralTopupResponse


class ReferralRepository(BaseRepository[Referral, ReferralResponse]):
    def __init__(self, db: Session):
        super().__init__(Referral, ReferralResponse, db)

    def get_by_referred_user(self, referred_user_id: int) -> Optional[Referral]:
        return (
            self.db.query(Referral)
            .filter(Referral.referred_user_id == referred_user_id)
            .first()
        )

    def get_or_create(self, referrer_user_id: int, referred_user_id: int) -> Referral:
        existing = self.get_by_referred_user(referred_user_id)
        if existing is not None:
            return existing
        try:
            with self.db.begin_nested():
                referral = Referral(
                    referrer_user_id=referrer_user_id,
                    referred_user_id=referred_user_id,
                )
                self.db.add(referral)
                self.db.flush()
        except IntegrityError:
            referral = self.get_by_referred_user(referred_user_id)
            if referral is None:
                raise
        return referral

    def list_for_referrer(self, referrer_user_id: int) -> List[Referral]:
        return (
            self.db.query(Referral)
            .filter(Referral.referrer_user_id == referrer_user_id)
            .order_by(Referral.id)
            .all()
        )


class ReferralTopupRepository(BaseRepository[ReferralTopup, ReferralTopupResponse]):
    def __init__(self, db: Session):
        super().__init__(ReferralTopup, ReferralTopupResponse, db)

    def get_by_transaction(self, transaction_id: int) -> Optional[ReferralTopup]:
        return (
            self.db.query(ReferralTopup)
            .filter(ReferralTopup.transaction_id == transaction_id)
            .first()
        )

    def count_for_referral(self, referral_id: int) -> int:
        return (
            self.db.query(func.count(ReferralTopup.id))
            .filter(ReferralTopup.referral_id == referral_id)
            .scalar()
            or 0
        )

    def count_bonus_topups(self, referral_id: int) -> int:
        """보너스가 실제 지급된 충전 수"""
        return (
            self.db.query(func.count(ReferralTopup.id))
            .filter(
                and_(
                    ReferralTopup.referral_id == referral_id,
                    ReferralTopup.referrer_bonus_transaction_id.isnot(None),
                )
            )
            .scalar()
            or 0
        )

    def list_for_referral(self, referral_id: int) -> List[ReferralTopup]:
        return (
            self.db.query(ReferralTopup)
            .filter(ReferralTopup.referral_id == referral_id)
            .order_by(ReferralTopup.topup_number, ReferralTopup.id)
            .all()
        )
