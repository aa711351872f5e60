from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from walletapi.models.base import BaseModel, BigIntegerPK


class Referral(BaseModel):
    """추천 관계 - 피추천인은 한 번만 추천될 수 있음"""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referred_user_id"),
        Index("idx_referrals_referrer_user_id", "referrer_user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    referrer_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    referred_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ReferralTopup(BaseModel):
    """피추천인의 충전 1건당 1행 - 보너스 한도 초과 시에도 기록 (bonus_points_awarded=0)"""

    __tablename__ = "referral_topups"
    __table_args__ = (
        UniqueConstraint("transaction_id"),
        Index("idx_referral_topups_referral_id", "referral_id"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    referral_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("referrals.id"), nullable=False
    )
    transaction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("transactions.id"), nullable=False
    )
    referrer_bonus_transaction_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("transactions.id"), nullable=True
    )
    referred_bonus_transaction_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("transactions.id"), nullable=True
    )
    bonus_points_awarded: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    topup_number: Mapped[int] = mapped_column(Integer, nullable=False)
