from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReferralCreateRequest(BaseModel):
    referrer_user_id: int = Field(..., gt=0, description="추천인")
    referred_user_id: int = Field(..., gt=0, description="피추천인")


class ReferralResponse(BaseModel):
    id: int
    referrer_user_id: int
    referred_user_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReferralTopupRequest(BaseModel):
    transaction_id: int = Field(..., gt=0, description="피추천인의 충전 거래 ID")


class ReferralTopupResponse(BaseModel):
    id: int
    referral_id: int
    transaction_id: int
    referrer_bonus_transaction_id: Optional[int] = None
    referred_bonus_transaction_id: Optional[int] = None
    bonus_points_awarded: int
    topup_number: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReferralTopupRecordResponse(BaseModel):
    """충전 기록 결과 - 한도 도달 시 bonus_awarded=False"""

    bonus_awarded: bool
    referral_topup: Optional[ReferralTopupResponse] = None


class ReferralHistoryTopup(BaseModel):
    transaction_id: int
    topup_number: int
    bonus_points_awarded: int
    bonus_awarded: bool
    created_at: Optional[datetime] = None


class ReferralHistoryItem(BaseModel):
    referral_id: int
    referred_user_id: int
    topups: List[ReferralHistoryTopup]
    total_bonus_points: int
    bonus_topups_remaining: int


class ReferralHistoryResponse(BaseModel):
    referrer_user_id: int
    referrals: List[ReferralHistoryItem]
    total_bonus_points: int
