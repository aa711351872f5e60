from datetime import date, datetime, timezone
from typing import Optional

import pytz

from walletapi.config import settings


class LedgerClock:
    """원장 시각 유틸리티

    DB 에 저장되는 시각은 모두 UTC 이며, 지급일/의무 충전일 같은 날짜 판단만
    플랫폼 현지 시간대(TIMEZONE) 기준으로 수행합니다.
    """

    LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

    @classmethod
    def utcnow(cls) -> datetime:
        return datetime.now(timezone.utc)

    @classmethod
    def local_now(cls) -> datetime:
        return datetime.now(cls.LOCAL_TZ)

    @classmethod
    def local_today(cls) -> date:
        """현지 기준 오늘 날짜"""
        return cls.local_now().date()

    @classmethod
    def to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """naive 값은 UTC 로 간주"""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def local_date(cls, value: datetime) -> date:
        """UTC 시각의 현지 날짜"""
        return cls.to_utc(value).astimezone(cls.LOCAL_TZ).date()
