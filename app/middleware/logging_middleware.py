"""
API 요청 로깅 미들웨어

요청마다 X-Request-ID를 부여하고(프록시가 준 값이 있으면 재사용) 응답 헤더로 돌려주며,
처리 시간과 함께 요청 1건을 구조화된 로그로 남깁니다.
"""

import logging
import time
import uuid
from typing import Callable, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import clear_request_context, log_api_call, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip(request: Request) -> str:
    """프록시/로드밸런서 헤더를 고려한 클라이언트 IP"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        skip_paths: Iterable[str] = ("/health/live", "/metrics"),
        slow_request_threshold_ms: float = 1000
    ):
        super().__init__(app)
        self.skip_paths = set(skip_paths)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_context(request_id)
        started = time.perf_counter()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {path}",
                extra={
                    "event_type": "api_error",
                    "request_id": request_id,
                    "duration_ms": (time.perf_counter() - started) * 1000,
                    "error_type": type(e).__name__,
                    "client_ip": client_ip(request)
                },
                exc_info=True
            )
            raise
        finally:
            clear_request_context()

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        if path not in self.skip_paths:
            log_api_call(
                logger, request.method, path, response.status_code, duration_ms,
                request_id=request_id,
                client_ip=client_ip(request),
                user_agent=request.headers.get("user-agent")
            )

        if duration_ms > self.slow_request_threshold_ms:
            logger.warning(
                f"Slow request detected: {request.method} {path} ({duration_ms:.0f}ms)",
                extra={"event_type": "slow_request", "request_id": request_id, "path": path}
            )

        return response
