import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("walletapi")

REQUEST_ID_HEADER = "x-request-id"


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로그 - 요청마다 request id 를 부여해 응답 헤더로 돌려줌"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        client = request.client.host if request.client else "-"
        line = f"[{request_id}] {request.method} {request.url.path} from {client}"

        started = time.perf_counter()
        logger.info(f"{line} started")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{line} failed with unhandled error")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        summary = f"{line} -> {response.status_code} in {elapsed_ms:.1f}ms"
        if response.status_code >= 500:
            logger.error(summary)
        elif response.status_code >= 400:
            logger.warning(summary)
        else:
            logger.info(summary)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
