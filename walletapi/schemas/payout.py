from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from walletapi.models.earnings import PayoutStatus


class PayoutResponse(BaseModel):
    id: int = Field(..., description="지급 ID")
    user_id: int
    points: int = Field(..., description="지급 포인트")
    amount_ttd: Decimal = Field(..., description="지급 금액 (TTD)")
    status: PayoutStatus
    scheduled_for: date = Field(..., description="지급 예정일")
    locked_points: int = Field(..., description="잠금된 수익 포인트")
    processed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CancelPayoutRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255, description="취소 사유")


class PayoutGenerationResult(BaseModel):
    user_id: int
    status: str = Field(..., description="created | updated | skipped | error")
    payout_id: Optional[int] = None
    reason: Optional[str] = None


class PayoutGenerationResponse(BaseModel):
    scheduled_for: date
    minimum_payout_points: int
    summary: Dict[str, int]
    results: List[PayoutGenerationResult]
