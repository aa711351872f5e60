import hmac
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from walletapi.config import settings
from walletapi.core.exceptions import AuthenticationError, InternalServerError

CRON_HEADER = "x-cron-secret"

security = HTTPBearer(auto_error=False)


def verify_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """스케줄러(cron) 전용 엔드포인트 보호

    `x-cron-secret` 헤더 또는 `Authorization: Bearer <secret>` 중 하나가
    CRON_SECRET 과 일치해야 합니다.
    """
    configured = settings.CRON_SECRET
    if not configured:
        raise InternalServerError("CRON_SECRET not configured")

    provided = request.headers.get(CRON_HEADER)
    if not provided and credentials:
        provided = credentials.credentials

    if not provided or not hmac.compare_digest(provided, configured):
        raise AuthenticationError("Invalid cron secret")
