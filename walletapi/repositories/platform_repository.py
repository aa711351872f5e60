from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from walletapi.core.exceptions import ConfigMissingError
from walletapi.models.platform import (
    PLATFORM_SETTINGS_ID,
    PlatformSettings,
    PlatformWithdrawal,
    WithdrawalStatus,
)
from walletapi.repositories.base import BaseRepository
from walletapi.schemas.platform import PlatformPricing, PlatformWithdrawalResponse


class PlatformSettingsRepository(BaseRepository[PlatformSettings, PlatformPricing]):
    """platform_settings 싱글톤 행 접근"""

    def __init__(self, db: Session):
        super().__init__(PlatformSettings, PlatformPricing, db)

    def get_pricing(self) -> PlatformPricing:
        """가격 설정 조회 - 행이 없으면 ConfigMissingError (기본값으로 대체하지 않음)"""
        row = self.get(PLATFORM_SETTINGS_ID)
        if row is None:
            raise ConfigMissingError(
                "Platform settings row (id=1) is missing",
                details={"table": "platform_settings", "id": PLATFORM_SETTINGS_ID},
            )
        return self.to_schema(row)

    def upsert(self, pricing: PlatformPricing) -> PlatformSettings:
        """설정 행 생성/갱신 (관리 스크립트 전용)"""
        row = self.get(PLATFORM_SETTINGS_ID, for_update=True)
        values = pricing.model_dump()
        if row is None:
            row = PlatformSettings(id=PLATFORM_SETTINGS_ID, **values)
            self.db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        self.db.flush()
        return row


class PlatformWithdrawalRepository(
    BaseRepository[PlatformWithdrawal, PlatformWithdrawalResponse]
):
    def __init__(self, db: Session):
        super().__init__(PlatformWithdrawal, PlatformWithdrawalResponse, db)

    def sum_completed(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Decimal:
        query = self.db.query(
            func.coalesce(func.sum(PlatformWithdrawal.amount_ttd), 0)
        ).filter(PlatformWithdrawal.status == WithdrawalStatus.COMPLETED.value)
        if start is not None:
            query = query.filter(PlatformWithdrawal.completed_at >= start)
        if end is not None:
            query = query.filter(PlatformWithdrawal.completed_at < end)
        return Decimal(str(query.scalar() or 0))

    def sum_pending(self) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(PlatformWithdrawal.amount_ttd), 0))
            .filter(and_(PlatformWithdrawal.status == WithdrawalStatus.PENDING.value))
            .scalar()
        )
        return Decimal(str(total or 0))
