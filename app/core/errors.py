"""
Deal chat 예외 계층.

모든 예외는 BaseCustomException(FastAPI HTTPException)을 상속하고
{"error", "message", "details", "status_code"} 형태로 직렬화됩니다.
HTTP 응답과 WebSocket error 프레임이 같은 error 코드를 사용합니다.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }

    def __str__(self) -> str:
        return f"{self.error}: {self.message}"


# =============================================================================
# 공통 예외
# =============================================================================

class ValidationException(BaseCustomException):
    """입력 검증 실패 (422)"""
    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="validation_error",
            message=message,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "validation_errors": [error.model_dump(mode="json") for error in self.validation_errors],
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """토큰 없음 / 유효하지 않은 토큰 (401)"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 (403)"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None,
        error: str = "authorization_error"
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error=error,
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """채팅방 / 메시지 / 상품을 찾을 수 없음 (404)"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message or f"{resource} not found",
            details=details or {"resource": resource}
        )


class ConflictException(BaseCustomException):
    """리소스 충돌 (409)"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="resource_conflict",
            message=message,
            details=details
        )


class BusinessLogicException(BaseCustomException):
    """비즈니스 규칙 위반 (400), 예: 본인 상품에 대한 채팅방 개설"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="business_logic_error",
            message=message,
            details=details
        )


class ExternalServiceException(BaseCustomException):
    """협력 서비스(Kafka, Sales/Orders) 호출 실패 (502)"""
    def __init__(
        self,
        service: str,
        message: str = "External service error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="external_service_error",
            message=f"{service}: {message}",
            details=details or {"service": service}
        )


# =============================================================================
# 채팅방 / 거래 도메인 예외
# =============================================================================

class UnauthorizedActionException(AuthorizationException):
    """채팅방에서 호출자의 역할로 수행할 수 없는 동작"""
    def __init__(
        self,
        message: str = "Caller is not allowed to perform this action",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, details=details, error="unauthorized")


class InvalidStateException(BaseCustomException):
    """현재 채팅방/거래 상태에서 허용되지 않는 요청"""
    def __init__(
        self,
        message: str = "Action is not valid in the current state",
        details: Optional[Dict[str, Any]] = None,
        error: str = "invalid_state"
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error=error,
            message=message,
            details=details
        )


class RoomClosedException(InvalidStateException):
    """종료(resolved)된 채팅방에 메시지 전송"""
    def __init__(self, room_id: Optional[str] = None):
        super().__init__(
            message="Chat room is resolved; reopen it to continue",
            details={"room_id": room_id} if room_id else None,
            error="room_closed"
        )


class InvalidTransitionException(BaseCustomException):
    """허용되지 않는 채팅방 상태 전이 (open <-> resolved)"""
    def __init__(
        self,
        message: str = "Room status transition not permitted",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="invalid_transition",
            message=message,
            details=details
        )


class AlreadyMediatedException(BaseCustomException):
    """이미 관리자가 배정된 채팅방"""
    def __init__(self, admin_id: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="already_mediated",
            message="Admin already added to this chat",
            details={"admin_id": admin_id} if admin_id else None
        )


class ConcurrentModificationException(ConflictException):
    """다른 writer가 먼저 채팅방을 갱신함 (revision 불일치)"""
    def __init__(self, room_id: str):
        super().__init__(
            message="Chat room was modified concurrently, retry the request",
            details={"room_id": room_id}
        )


# =============================================================================
# 자주 사용되는 에러 팩토리 함수들
# =============================================================================

def chat_room_not_found_error(room_id: Optional[str] = None):
    details = {"room_id": room_id} if room_id else None
    return ResourceNotFoundException("Chat room", details=details)


def message_not_found_error(message_id: Optional[str] = None):
    details = {"message_id": message_id} if message_id else None
    return ResourceNotFoundException("Message", details=details)


def product_not_found_error(product_id: Optional[str] = None):
    details = {"product_id": product_id} if product_id else None
    return ResourceNotFoundException("Product", details=details)


def invalid_token_error():
    return AuthenticationException("Invalid or expired token")
