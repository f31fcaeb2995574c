"""
통합 에러 처리

BaseCustomException은 그대로 직렬화하고, 요청 검증 실패는 필드별 validation_errors로,
MongoDB / 브로커 연결 장애는 503으로, 그 외 예외는 500으로 변환합니다.
"""

import logging
import traceback
from typing import Any, Callable, Dict, Iterable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ConnectionFailure, OperationFailure
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.errors import BaseCustomException, ValidationError

logger = logging.getLogger(__name__)

# 인프라 장애 -> (error 코드, 메시지). 순서대로 isinstance 검사
UNAVAILABLE_ERRORS = (
    (ConnectionFailure, "mongodb_connection_error", "MongoDB connection failed"),
    (OperationFailure, "mongodb_operation_error", "MongoDB operation failed"),
    (ConnectionError, "connection_error", "Service temporarily unavailable"),
)


def error_json(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": details, "status_code": status_code}
    )


def _debug_enabled(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.debug)


def _validation_response(errors: Iterable[dict]) -> JSONResponse:
    validation_errors = [
        ValidationError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input")
        ).model_dump(mode="json")
        for error in errors
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "validation_errors": validation_errors,
            "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY
        }
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """라우터 예외 핸들러까지 도달하지 못한 예외를 표준 에러 응답으로 변환"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseCustomException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        except PydanticValidationError as e:
            return _validation_response(e.errors())

        except Exception as e:
            for exc_type, error, message in UNAVAILABLE_ERRORS:
                if isinstance(e, exc_type):
                    logger.error(f"{message}: {type(e).__name__}: {e}")
                    return error_json(
                        error, message, status.HTTP_503_SERVICE_UNAVAILABLE,
                        {"detail": str(e)} if _debug_enabled(request) else None
                    )

            logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {e}")
            details = None
            if _debug_enabled(request):
                details = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }
            return error_json(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                details
            )


def create_http_exception_handler():
    """HTTPException 핸들러 (커스텀 예외는 to_dict, 그 외는 http_error로 감싸기)"""
    async def http_exception_handler(request: Request, exc):
        if isinstance(exc, BaseCustomException):
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_dict(),
                headers=getattr(exc, "headers", None)
            )

        if isinstance(exc.detail, str):
            return error_json("http_error", exc.detail, exc.status_code)
        return error_json("http_error", "HTTP error occurred", exc.status_code, {"detail": exc.detail})

    return http_exception_handler


def create_validation_exception_handler():
    """요청 본문/파라미터 검증 실패를 표준 검증 에러 형식으로 변환"""
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _validation_response(exc.errors())

    return validation_exception_handler
