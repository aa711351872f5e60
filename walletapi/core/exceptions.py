"""
원장 API 예외

모든 예외는 동일한 응답 본문을 갖습니다:
    {"success": false, "error": {"code": ..., "message": ..., "details": {...}}}

서비스는 예외를 발생시키기만 하고, HTTP 변환은 exception_handlers 에서 수행합니다.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """원장 API 예외 베이스 - 하위 클래스는 http_status / error_code 만 지정"""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_001"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}

        super().__init__(status_code=self.http_status, detail=self.to_body())

    def to_body(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }

    def __str__(self) -> str:
        return self.message


class AuthenticationError(BaseAPIException):
    """cron 시크릿 불일치"""

    http_status = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTH_001"
    default_message = "Authentication failed"


class ValidationError(BaseAPIException):
    """요청 값이 원장 규칙에 맞지 않음 (0 이하 금액, 자기 추천 등)"""

    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_001"
    default_message = "Validation failed"


class NotFoundError(BaseAPIException):
    http_status = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND_001"
    default_message = "Resource not found"


class ConflictError(BaseAPIException):
    """ref_id 충돌, 중복 추천, 지급일이 아닌 날의 지급 생성"""

    http_status = status.HTTP_409_CONFLICT
    error_code = "CONFLICT_001"
    default_message = "Resource conflict"


class InternalServerError(BaseAPIException):
    pass


class InsufficientBalanceError(BaseAPIException):
    """거래 적용 후 잔액이 음수가 되는 경우 - 지갑은 변경되지 않음"""

    http_status = status.HTTP_400_BAD_REQUEST
    error_code = "BALANCE_001"
    default_message = "Insufficient balance"


class InvalidTransitionError(BaseAPIException):
    """상태 전이 불가 (이미 종료 상태인 항목 확정/잠금/취소 시도)"""

    http_status = status.HTTP_409_CONFLICT
    error_code = "TRANSITION_001"
    default_message = "Invalid status transition"


class ConfigMissingError(BaseAPIException):
    """platform_settings 누락 - 가격 정보에 의존하는 모든 계산은 실패해야 함"""

    error_code = "CONFIG_001"
    default_message = "Platform settings not configured"
