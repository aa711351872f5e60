import logging
from datetime import datetime
from typing import List, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from walletapi.containers import Container
from walletapi.core.security import verify_cron_secret
from walletapi.models.earnings import EarningsStatus
from walletapi.schemas.earnings import (
    EarningsCreditRequest,
    EarningsEntryResponse,
    MaturationRequest,
    MaturationResponse,
    MaturationSweepResponse,
    ReverseEntryRequest,
)
from walletapi.services.earnings_service import EarningsService

logger = logging.getLogger(__name__)

# 수익 원장 API 라우터 - /earnings 경로
router = APIRouter(prefix="/earnings", tags=["earnings"])


@router.post(
    "/mature-all",
    response_model=MaturationSweepResponse,
    dependencies=[Depends(verify_cron_secret)],
)
@inject
async def mature_all(
    request: Optional[MaturationRequest] = None,
    as_of: Optional[datetime] = Query(None, description="기준 시각 (기본: 현재)"),
    earnings_service: EarningsService = Depends(
        Provide[Container.services.earnings_service]
    ),
) -> MaturationSweepResponse:
    """전체 사용자 수익 성숙 스윕 (스케줄러 전용)"""
    return earnings_service.mature_all_due(
        limit_per_user=request.limit if request else None, as_of=as_of
    )


@router.post("/entries/{entry_id}/reverse", response_model=EarningsEntryResponse)
@inject
async def reverse_entry(
    request: ReverseEntryRequest,
    entry_id: int = Path(..., gt=0),
    earnings_service: EarningsService = Depends(
        Provide[Container.services.earnings_service]
    ),
) -> EarningsEntryResponse:
    """
    수익 항목 취소

    HTTP Status:
        200: pending/confirmed 항목 취소 완료
        404: 항목 없음
        409: locked/paid/reversed 항목
    """
    return earnings_service.reverse_entry(entry_id, request.reason)


@router.post("/{user_id}/credit", response_model=EarningsEntryResponse)
@inject
async def credit_earnings(
    request: EarningsCreditRequest,
    user_id: int = Path(..., gt=0),
    earnings_service: EarningsService = Depends(
        Provide[Container.services.earnings_service]
    ),
) -> EarningsEntryResponse:
    return earnings_service.credit_earnings(
        user_id,
        request.points,
        request.source_type,
        source_id=request.source_id,
        hold_seconds=request.hold_seconds,
        metadata=request.metadata,
    )


@router.post("/{user_id}/mature", response_model=MaturationResponse)
@inject
async def mature_earnings(
    request: Optional[MaturationRequest] = None,
    user_id: int = Path(..., gt=0),
    earnings_service: EarningsService = Depends(
        Provide[Container.services.earnings_service]
    ),
) -> MaturationResponse:
    """성숙 시각이 지난 pending 수익 확정 (멱등)"""
    return earnings_service.mature_earnings(
        user_id, limit=request.limit if request else None
    )


@router.get("/{user_id}", response_model=List[EarningsEntryResponse])
@inject
async def list_entries(
    user_id: int = Path(..., gt=0),
    status: Optional[EarningsStatus] = Query(None, description="상태 필터"),
    earnings_service: EarningsService = Depends(
        Provide[Container.services.earnings_service]
    ),
) -> List[EarningsEntryResponse]:
    return earnings_service.list_entries(user_id, status)
