"""
지갑 API 라우터

사용자 지갑 엔드포인트:
- GET /wallets/{user_id}: 지갑 요약 (잔액, 예상 포인트, 지급 가능 여부)
- GET /wallets/{user_id}/transactions: 거래 내역 (최신순)
- GET /wallets/{user_id}/integrity: 잔액 정합성 검증
- POST /wallets/{user_id}/topups: 충전 요청 (검증 대기)
- POST /wallets/{user_id}/spend: 포인트 사용

운영 엔드포인트:
- POST /wallets/{user_id}/transactions: 거래 직접 적용
- POST /wallets/topups/{transaction_id}/verify: 충전 검증
- POST /wallets/topups/{transaction_id}/reject: 충전 거절
- POST /wallets/spends/{transaction_id}/refund: 포인트 사용 환불
- POST /wallets/reminders/topup: 의무 충전 알림 대상 스캔 (cron)
"""

import logging
from datetime import date
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from walletapi.containers import Container
from walletapi.core.security import verify_cron_secret
from walletapi.schemas.wallet import (
    ApplyTransactionRequest,
    RefundRequest,
    RejectTopupRequest,
    SpendRequest,
    TopupReminderScanResponse,
    TopupRequest,
    TransactionListResponse,
    TransactionResponse,
    WalletIntegrityResponse,
    WalletSummaryResponse,
)
from walletapi.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.post(
    "/reminders/topup",
    response_model=TopupReminderScanResponse,
    dependencies=[Depends(verify_cron_secret)],
)
@inject
async def scan_topup_reminders(
    as_of: Optional[date] = Query(None, description="기준 날짜 (기본: 현지 오늘)"),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TopupReminderScanResponse:
    """의무 충전 알림 대상 스캔 - 알림 발송은 호출 측에서 수행"""
    return ledger_service.find_topup_reminders(as_of)


@router.post("/topups/{transaction_id}/verify", response_model=TransactionResponse)
@inject
async def verify_topup(
    transaction_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    """
    충전 검증 - 요청 시점에 고정된 예상 포인트를 지급

    HTTP Status:
        200: 검증 완료
        404: 거래 없음
        409: 이미 검증/거절된 충전
    """
    return ledger_service.verify_topup(transaction_id)


@router.post("/topups/{transaction_id}/reject", response_model=TransactionResponse)
@inject
async def reject_topup(
    request: RejectTopupRequest,
    transaction_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    return ledger_service.reject_topup(transaction_id, request.reason)


@router.post("/spends/{transaction_id}/refund", response_model=TransactionResponse)
@inject
async def refund_spend(
    request: RefundRequest,
    transaction_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    return ledger_service.refund_spend(transaction_id, request.reason)


@router.get("/{user_id}", response_model=WalletSummaryResponse)
@inject
async def get_wallet(
    user_id: int = Path(..., gt=0, description="사용자 ID"),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> WalletSummaryResponse:
    """
    지갑 요약 조회

    Returns:
        WalletSummaryResponse:
        - wallet: 실제 잔액 (verified 거래만 반영)
        - projected_points: 검증 대기 충전의 예상 포인트 (잔액과 별도)
        - is_payout_eligible: 최소 지급 포인트 도달 여부
    """
    return ledger_service.get_wallet_summary(user_id)


@router.get("/{user_id}/transactions", response_model=TransactionListResponse)
@inject
async def get_transactions(
    user_id: int = Path(..., gt=0),
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionListResponse:
    return ledger_service.get_transactions(user_id, limit=limit, offset=offset)


@router.post("/{user_id}/transactions", response_model=TransactionResponse)
@inject
async def apply_transaction(
    request: ApplyTransactionRequest,
    user_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    """거래 직접 적용 (point_spend, point_refund)

    - 그 외 유형은 422 (VALIDATION_001): 충전/수익/지급은 전용 엔드포인트 사용
    - 잔액이 음수가 되면 400 (BALANCE_001)
    """
    return ledger_service.apply_transaction(
        user_id,
        request.type,
        points_delta=request.points_delta,
        earnings_delta=request.earnings_points_delta,
        amount_ttd=request.amount_ttd,
        metadata=request.metadata,
        ref_id=request.ref_id,
    )


@router.post("/{user_id}/topups", response_model=TransactionResponse)
@inject
async def submit_topup(
    request: TopupRequest,
    user_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    """충전 요청 - pending 거래 생성, projected_points 로 예상 포인트 표시"""
    return ledger_service.submit_topup(user_id, request.amount_ttd, ref_id=request.ref_id)


@router.post("/{user_id}/spend", response_model=TransactionResponse)
@inject
async def spend_points(
    request: SpendRequest,
    user_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> TransactionResponse:
    return ledger_service.spend_points(
        user_id,
        request.points,
        request.category,
        recipient_user_id=request.recipient_user_id,
        ref_id=request.ref_id,
    )


@router.get("/{user_id}/integrity", response_model=WalletIntegrityResponse)
@inject
async def verify_integrity(
    user_id: int = Path(..., gt=0),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
) -> WalletIntegrityResponse:
    return ledger_service.verify_wallet_integrity(user_id)
