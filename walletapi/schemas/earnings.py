from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from walletapi.models.earnings import EarningsSourceType, EarningsStatus


class EarningsCreditRequest(BaseModel):
    """수익 적립 요청"""

    points: int = Field(..., gt=0, description="적립 포인트")
    source_type: EarningsSourceType = Field(..., description="수익 원천")
    source_id: Optional[str] = Field(None, max_length=100, description="원천 ID")
    hold_seconds: int = Field(0, ge=0, description="성숙 대기 시간(초), 0이면 즉시 확정")
    metadata: Optional[dict] = Field(None, description="부가 정보")


class EarningsEntryResponse(BaseModel):
    id: int = Field(..., description="수익 원장 항목 ID")
    user_id: int
    source_type: str
    source_id: Optional[str] = None
    points: int
    amount_ttd: Decimal
    status: EarningsStatus
    available_at: datetime
    payout_id: Optional[int] = None
    metadata_json: Optional[dict] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReverseEntryRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255, description="취소 사유")


class MaturationRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=1000, description="1회 처리 한도")


class MaturationResponse(BaseModel):
    user_id: int
    matured_count: int = Field(..., description="확정된 항목 수")
    matured_points: int = Field(..., description="확정된 포인트 합계")


class MaturationSweepResponse(BaseModel):
    users_processed: int
    matured_count: int
    matured_points: int
    failed_user_ids: List[int] = Field(default_factory=list)
