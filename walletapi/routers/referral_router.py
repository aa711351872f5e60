import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path

from walletapi.containers import Container
from walletapi.schemas.referral import (
    ReferralCreateRequest,
    ReferralHistoryResponse,
    ReferralResponse,
    ReferralTopupRecordResponse,
    ReferralTopupRequest,
)
from walletapi.services.referral_service import ReferralService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.post("/", response_model=ReferralResponse)
@inject
async def create_referral(
    request: ReferralCreateRequest,
    referral_service: ReferralService = Depends(
        Provide[Container.services.referral_service]
    ),
) -> ReferralResponse:
    """추천 관계 등록 - 자기 추천은 422, 다른 추천인이 이미 있으면 409"""
    return referral_service.get_or_create_referral(
        request.referrer_user_id, request.referred_user_id
    )


@router.post("/{referral_id}/topups", response_model=ReferralTopupRecordResponse)
@inject
async def record_referral_topup(
    request: ReferralTopupRequest,
    referral_id: int = Path(..., gt=0),
    referral_service: ReferralService = Depends(
        Provide[Container.services.referral_service]
    ),
) -> ReferralTopupRecordResponse:
    """피추천인 충전 기록 - 보너스 한도 도달 시 bonus_awarded=false"""
    record = referral_service.record_referral_topup(referral_id, request.transaction_id)
    return ReferralTopupRecordResponse(
        bonus_awarded=record is not None, referral_topup=record
    )


@router.get("/{referrer_user_id}/history", response_model=ReferralHistoryResponse)
@inject
async def get_referral_history(
    referrer_user_id: int = Path(..., gt=0),
    referral_service: ReferralService = Depends(
        Provide[Container.services.referral_service]
    ),
) -> ReferralHistoryResponse:
    return referral_service.get_referral_history(referrer_user_id)
