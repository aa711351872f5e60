from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RevenueRule(str, Enum):
    """플랫폼 수익 집계 규칙 - 호출자가 반드시 명시적으로 선택"""

    MARGIN = "margin"  # (구매 단가 - 사용자 가치) * 충전 포인트
    FLAT = "flat"  # 충전 금액 전액 + 음성메모/이벤트 사용분


class RevenueBreakdown(BaseModel):
    """수익 집계 결과 (읽기 전용)"""

    rule: RevenueRule
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    topup_count: int = Field(..., description="검증된 충전 건수")
    total_topup_amount_ttd: Decimal = Field(..., description="충전 금액 합계")
    points_credited: int = Field(..., description="충전으로 지급된 포인트 합계")

    topup_revenue_ttd: Decimal = Field(..., description="충전에서 인식된 수익")
    spend_revenue_ttd: Decimal = Field(..., description="음성메모/이벤트 사용분 수익 (flat 규칙 전용)")
    voice_note_points: int = Field(..., description="음성메모 사용 포인트")
    live_event_points: int = Field(..., description="이벤트 사용 포인트")

    total_platform_revenue_ttd: Decimal
    total_user_earnings_ttd: Decimal = Field(..., description="사용자에게 지급할 수익 (미지급, 미취소)")
    total_user_payouts_ttd: Decimal = Field(..., description="사용자에게 지급 완료된 금액")
    total_platform_withdrawals_ttd: Decimal = Field(..., description="완료된 플랫폼 출금")
    available_for_withdrawal_ttd: Decimal = Field(..., description="출금 가능 금액 (0 하한)")
