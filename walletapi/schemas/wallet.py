from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from walletapi.models.wallet import SpendCategory, TransactionStatus, TransactionType


class WalletResponse(BaseModel):
    """지갑 잔액 응답"""

    user_id: int = Field(..., description="사용자 ID")
    points_balance: int = Field(..., description="사용 가능 포인트")
    earnings_points: int = Field(..., description="확정 수익 포인트")
    locked_earnings_points: int = Field(..., description="지급 예약된 수익 포인트")
    next_topup_due_on: Optional[date] = Field(None, description="다음 의무 충전일")
    last_topup_at: Optional[datetime] = Field(None, description="마지막 충전 시각")

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    """거래 원장 항목"""

    id: int = Field(..., description="거래 ID")
    user_id: int = Field(..., description="사용자 ID")
    type: TransactionType = Field(..., description="거래 유형")
    status: TransactionStatus = Field(..., description="거래 상태")
    amount_ttd: Optional[Decimal] = Field(None, description="금액 (TTD)")
    points_delta: int = Field(..., description="포인트 변화량")
    earnings_points_delta: int = Field(..., description="수익 포인트 변화량")
    category: Optional[str] = Field(None, description="사용처 분류")
    recipient_user_id: Optional[int] = Field(None, description="수신자")
    sender_user_id: Optional[int] = Field(None, description="발신자")
    ledger_entry_id: Optional[int] = Field(None, description="수익 원장 항목 ID")
    payout_id: Optional[int] = Field(None, description="지급 ID")
    related_transaction_id: Optional[int] = Field(None, description="연관 거래 ID")
    buy_price_per_point_at_time: Optional[Decimal] = Field(None)
    user_value_per_point_at_time: Optional[Decimal] = Field(None)
    ref_id: Optional[str] = Field(None, description="참조 ID")
    metadata_json: Optional[dict] = Field(None, description="부가 정보")
    created_at: Optional[datetime] = Field(None, description="생성 시각")
    verified_at: Optional[datetime] = Field(None, description="검증 시각")

    class Config:
        from_attributes = True

    @computed_field  # type: ignore[misc]
    @property
    def projected_points(self) -> Optional[int]:
        """검증 대기 중인 충전의 예상 포인트 (실제 잔액과 별개)"""
        if self.type == TransactionType.TOP_UP and self.status == TransactionStatus.PENDING:
            return self.points_delta
        return None


class TransactionListResponse(BaseModel):
    """거래 내역 조회 응답"""

    wallet: WalletResponse = Field(..., description="현재 지갑")
    entries: List[TransactionResponse] = Field(..., description="거래 목록 (최신순)")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class ApplyTransactionRequest(BaseModel):
    """관리용 직접 거래 적용 요청"""

    type: TransactionType = Field(..., description="거래 유형")
    points_delta: int = Field(0, description="포인트 변화량")
    earnings_points_delta: int = Field(0, description="수익 포인트 변화량")
    amount_ttd: Optional[Decimal] = Field(None, description="금액 (TTD)")
    metadata: Optional[dict] = Field(None, description="부가 정보")
    ref_id: Optional[str] = Field(None, max_length=100, description="참조 ID")


class TopupRequest(BaseModel):
    amount_ttd: Decimal = Field(..., gt=0, description="충전 금액 (TTD)")
    ref_id: Optional[str] = Field(None, max_length=100, description="참조 ID")


class RejectTopupRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255, description="거절 사유")


class SpendRequest(BaseModel):
    points: int = Field(..., gt=0, description="사용 포인트")
    category: SpendCategory = Field(..., description="사용처")
    recipient_user_id: Optional[int] = Field(None, description="수신자")
    ref_id: Optional[str] = Field(None, max_length=100, description="참조 ID")


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255, description="환불 사유")


class WalletSummaryResponse(BaseModel):
    """지갑 화면용 요약"""

    wallet: WalletResponse
    projected_points: int = Field(..., description="검증 대기 중인 충전의 예상 포인트 합계")
    pending_topup_count: int = Field(..., description="검증 대기 충전 건수")
    pending_earnings_points: int = Field(..., description="성숙 대기 수익 포인트")
    minimum_payout_points: int = Field(..., description="최소 지급 포인트")
    is_payout_eligible: bool = Field(..., description="지급 가능 여부")
    earnings_value_ttd: Decimal = Field(..., description="확정 수익 환산 금액")
    next_payout_date: date = Field(..., description="다음 지급일")


class WalletIntegrityResponse(BaseModel):
    """지갑 정합성 검증 결과"""

    status: str = Field(..., description="OK | MISMATCH")
    user_id: int
    recorded_points_balance: int
    calculated_points_balance: int
    recorded_earnings_points: int
    calculated_earnings_points: int
    transaction_count: int
    verified_at: datetime


class TopupReminder(BaseModel):
    user_id: int
    next_topup_due_on: date
    reminder_type: str = Field(..., description="due_soon | due_today | overdue")
    overdue_days: int = 0


class TopupReminderScanResponse(BaseModel):
    scanned: int
    reminders: List[TopupReminder]
