from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlatformPricing(BaseModel):
    """플랫폼 가격 설정 스냅샷 - 모든 원장 규칙 함수에 명시적으로 전달"""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    buy_price_per_point: Decimal = Field(..., gt=0, description="포인트 구매 단가 (TTD)")
    user_value_per_point: Decimal = Field(..., gt=0, description="사용자 환산 가치 (TTD)")
    payout_minimum_ttd: Decimal = Field(..., ge=0, description="최소 지급 금액 (TTD)")
    mandatory_topup_ttd: Decimal = Field(..., ge=0, description="의무 충전 금액 (TTD)")
    referral_bonus_points: int = Field(..., ge=0, description="추천 보너스 포인트")
    referral_max_topups: int = Field(..., ge=0, description="추천당 보너스 지급 최대 충전 횟수")


class PlatformWithdrawalRequest(BaseModel):
    """플랫폼 출금 요청"""

    amount_ttd: Decimal = Field(..., gt=0, description="출금 금액 (TTD)")
    notes: Optional[str] = Field(None, max_length=500, description="메모")

    class Config:
        from_attributes = True


class PlatformWithdrawalResponse(BaseModel):
    id: int = Field(..., description="출금 ID")
    amount_ttd: Decimal = Field(..., description="출금 금액")
    status: str = Field(..., description="상태")
    completed_at: Optional[datetime] = Field(None, description="완료 시각")
    notes: Optional[str] = Field(None, description="메모")
    created_at: Optional[datetime] = Field(None, description="생성 시각")

    class Config:
        from_attributes = True
