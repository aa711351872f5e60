"""
지갑 / 거래 원장 데이터 모델

지갑(wallets)은 사용자별 잔액 스냅샷이고, 거래(transactions)는 잔액에 영향을 주는
모든 이벤트의 불변(append-only) 기록입니다. 지갑 잔액은 오직 거래 적용을 통해서만
변경됩니다.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from walletapi.models.base import BaseModel, BigIntegerPK, JSONType


class TransactionType(str, Enum):
    TOP_UP = "top_up"
    PAYOUT = "payout"
    PAYOUT_LOCK = "payout_lock"
    PAYOUT_RELEASE = "payout_release"
    POINT_SPEND = "point_spend"
    POINT_REFUND = "point_refund"
    EARNING_CREDIT = "earning_credit"
    EARNING_REVERSAL = "earning_reversal"
    REFERRAL_BONUS = "referral_bonus"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SpendCategory(str, Enum):
    """포인트 사용처 - 수익 집계 규칙에서 구분에 사용"""

    VOICE_NOTE = "voice_note"
    LIVE_EVENT = "live_event"
    BOOST = "boost"
    OTHER = "other"


class Wallet(BaseModel):
    """사용자 지갑 - 사용자당 1개"""

    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id"),
        CheckConstraint("points_balance >= 0", name="ck_wallets_points_balance"),
        CheckConstraint("earnings_points >= 0", name="ck_wallets_earnings_points"),
        CheckConstraint(
            "locked_earnings_points >= 0", name="ck_wallets_locked_earnings_points"
        ),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # 구매한(사용 가능한) 포인트
    points_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # 확정되어 출금 가능한 수익 포인트
    earnings_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # 다음 지급 사이클에 묶인 수익 포인트
    locked_earnings_points: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    next_topup_due_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_topup_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_mandatory_topup_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_topup_reminder_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Transaction(BaseModel):
    """
    거래 원장 - 잔액에 영향을 주는 모든 이벤트

    원칙:
    1. 불변성: pending 충전의 status 전이 외에는 수정하지 않음
    2. 정정은 새 거래(point_refund, earning_reversal)로만 수행
    3. 잔액 = verified 거래의 delta 합계
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("ref_id"),
        Index("idx_transactions_user_type_status", "user_id", "type", "status"),
        Index("idx_transactions_created_at", "created_at"),
        Index("idx_transactions_verified_at", "verified_at"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.VERIFIED.value
    )

    amount_ttd: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    # pending 충전의 경우 예상(projected) 포인트 - verified 전에는 잔액에 반영되지 않음
    points_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    earnings_points_delta: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    category: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    recipient_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    sender_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    ledger_entry_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("wallet_earnings_ledger.id"), nullable=True
    )
    payout_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("payouts.id"), nullable=True
    )
    related_transaction_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("transactions.id"), nullable=True
    )

    # 거래 시점의 가격 스냅샷 (수익 집계의 과거 정확성 보장)
    buy_price_per_point_at_time: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 4), nullable=True
    )
    user_value_per_point_at_time: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 4), nullable=True
    )

    # verified 로 전이된 시각 - 수익 집계 기간의 기준
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # 멱등성 키 (선택)
    ref_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, nullable=True
    )
