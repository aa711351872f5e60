"""
수익(earnings) 원장 / 지급(payout) 데이터 모델

수익 항목 생명주기:
    pending -> confirmed (성숙) -> locked (지급 예약) -> paid
    pending | confirmed -> reversed (사기/환불 등)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from walletapi.models.base import BaseModel, BigIntegerPK, JSONType


class EarningsStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    LOCKED = "locked"
    PAID = "paid"
    REVERSED = "reversed"


class EarningsSourceType(str, Enum):
    BOOST = "boost"
    LIVE_REGISTRATION = "live_registration"
    STORAGE_CREDIT = "storage_credit"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    REFERRAL_BONUS = "referral_bonus"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Payout(BaseModel):
    __tablename__ = "payouts"
    __table_args__ = (
        Index("idx_payouts_user_status", "user_id", "status"),
        Index("idx_payouts_scheduled_for", "scheduled_for"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    points: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_ttd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PayoutStatus.PENDING.value
    )
    scheduled_for: Mapped[date] = mapped_column(Date, nullable=False)
    locked_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class WalletEarningsLedger(BaseModel):
    """수익 원장 항목 - 부스트 보상, 라이브 등록 수익 배분, 스토리지 크레딧 등"""

    __tablename__ = "wallet_earnings_ledger"
    __table_args__ = (
        Index("idx_wallet_earnings_ledger_user_status", "user_id", "status"),
        Index("idx_wallet_earnings_ledger_available_at", "available_at"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_ttd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EarningsStatus.PENDING.value
    )
    # 성숙 시각 - 이 시각이 지나면 confirmed 로 승격 가능
    available_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    payout_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("payouts.id"), nullable=True
    )
    metadata_json: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, nullable=True
    )
