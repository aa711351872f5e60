from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from walletapi.models.base import BaseModel, BigIntegerPK

PLATFORM_SETTINGS_ID = 1


class PlatformSettings(BaseModel):
    """플랫폼 가격 설정 (싱글톤, id=1) - 외부에서 관리, 원장 로직에서는 읽기 전용"""

    __tablename__ = "platform_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    buy_price_per_point: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    user_value_per_point: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    payout_minimum_ttd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mandatory_topup_ttd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    referral_bonus_points: Mapped[int] = mapped_column(BigInteger, nullable=False)
    referral_max_topups: Mapped[int] = mapped_column(Integer, nullable=False)


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PlatformWithdrawal(BaseModel):
    """플랫폼 자체 출금 기록"""

    __tablename__ = "platform_withdrawals"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    amount_ttd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=WithdrawalStatus.PENDING.value
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
