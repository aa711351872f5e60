"""
플랫폼 수익 API 라우터 (운영용)

- GET /revenue?rule=margin|flat: 수익 집계 (rule 필수, 기본값 없음)
- POST /revenue/withdrawals: 플랫폼 출금 요청
- POST /revenue/withdrawals/{withdrawal_id}/complete: 출금 완료 처리
"""

import logging
from datetime import datetime
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from walletapi.containers import Container
from walletapi.schemas.platform import PlatformWithdrawalRequest, PlatformWithdrawalResponse
from walletapi.schemas.revenue import RevenueBreakdown, RevenueRule
from walletapi.services.revenue_service import RevenueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/revenue", tags=["revenue"])


@router.get("/", response_model=RevenueBreakdown)
@inject
async def get_revenue(
    rule: RevenueRule = Query(..., description="집계 규칙 (margin | flat)"),
    start: Optional[datetime] = Query(None, description="시작 시각 (포함)"),
    end: Optional[datetime] = Query(None, description="종료 시각 (미포함)"),
    revenue_service: RevenueService = Depends(Provide[Container.services.revenue_service]),
) -> RevenueBreakdown:
    return revenue_service.compute_revenue(rule, start=start, end=end)


@router.post("/withdrawals", response_model=PlatformWithdrawalResponse)
@inject
async def request_withdrawal(
    request: PlatformWithdrawalRequest,
    rule: RevenueRule = Query(..., description="출금 가능 금액 계산 규칙"),
    revenue_service: RevenueService = Depends(Provide[Container.services.revenue_service]),
) -> PlatformWithdrawalResponse:
    """플랫폼 출금 요청 - 출금 가능 금액 초과 시 422"""
    return revenue_service.record_platform_withdrawal(
        request.amount_ttd, rule, notes=request.notes
    )


@router.post("/withdrawals/{withdrawal_id}/complete", response_model=PlatformWithdrawalResponse)
@inject
async def complete_withdrawal(
    withdrawal_id: int = Path(..., gt=0),
    revenue_service: RevenueService = Depends(Provide[Container.services.revenue_service]),
) -> PlatformWithdrawalResponse:
    return revenue_service.complete_platform_withdrawal(withdrawal_id)
