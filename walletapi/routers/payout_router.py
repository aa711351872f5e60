import logging
from datetime import date
from typing import List, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from walletapi.containers import Container
from walletapi.core.security import verify_cron_secret
from walletapi.models.earnings import PayoutStatus
from walletapi.schemas.payout import (
    CancelPayoutRequest,
    PayoutGenerationResponse,
    PayoutResponse,
)
from walletapi.services.payout_service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.get("/", response_model=List[PayoutResponse])
@inject
async def list_payouts(
    user_id: Optional[int] = Query(None, gt=0, description="사용자 필터"),
    status: Optional[PayoutStatus] = Query(None, description="상태 필터"),
    limit: int = Query(100, ge=1, le=100),
    offset: int = Query(0, ge=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> List[PayoutResponse]:
    return payout_service.list_payouts(
        user_id=user_id, status=status, limit=limit, offset=offset
    )


@router.post(
    "/generate",
    response_model=PayoutGenerationResponse,
    dependencies=[Depends(verify_cron_secret)],
)
@inject
async def generate_payouts(
    as_of: Optional[date] = Query(None, description="기준 날짜 (지급일이어야 함)"),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> PayoutGenerationResponse:
    """월간 지급 생성 (스케줄러 전용) - 지급일이 아니면 409"""
    return payout_service.generate_payouts(as_of)


@router.post("/{user_id}/lock", response_model=Optional[PayoutResponse])
@inject
async def lock_payout(
    user_id: int = Path(..., gt=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> Optional[PayoutResponse]:
    """
    지급 가능 수익 잠금

    Returns:
        PayoutResponse | null: 최소 지급 포인트 미만이면 null
    """
    return payout_service.lock_payout_eligible_earnings(user_id)


@router.post("/{payout_id}/processing", response_model=PayoutResponse)
@inject
async def mark_processing(
    payout_id: int = Path(..., gt=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> PayoutResponse:
    return payout_service.mark_processing(payout_id)


@router.post("/{payout_id}/paid", response_model=PayoutResponse)
@inject
async def mark_paid(
    payout_id: int = Path(..., gt=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> PayoutResponse:
    return payout_service.mark_paid(payout_id)


@router.post("/{payout_id}/failed", response_model=PayoutResponse)
@inject
async def mark_failed(
    request: CancelPayoutRequest,
    payout_id: int = Path(..., gt=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> PayoutResponse:
    return payout_service.mark_failed(payout_id, request.reason)


@router.post("/{payout_id}/cancel", response_model=PayoutResponse)
@inject
async def cancel_payout(
    request: CancelPayoutRequest,
    payout_id: int = Path(..., gt=0),
    payout_service: PayoutService = Depends(Provide[Container.services.payout_service]),
) -> PayoutResponse:
    """지급 취소 - 잠긴 수익을 earnings 로 복원"""
    return payout_service.cancel_payout(payout_id, request.reason)
