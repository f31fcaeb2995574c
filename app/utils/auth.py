"""
Bearer token 해석.

토큰 발급은 Identity 서비스의 책임이며 이 서비스는 서명 검증과 클레임 해석만 수행합니다.
"""

import logging
from typing import Optional

from jose import JWTError, jwt

from app.core.config import Settings, settings as default_settings
from app.core.errors import AuthenticationException, invalid_token_error
from app.domain.entities import Caller

logger = logging.getLogger(__name__)

PLATFORM_ROLES = ("buyer", "developer", "admin")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """'Bearer <token>' 헤더 값에서 토큰만 추출"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    """JWT 검증 후 payload 반환 (검증 실패 시 None)"""
    settings = settings or default_settings
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        return None


def caller_from_token(token: Optional[str], settings: Optional[Settings] = None) -> Caller:
    """
    토큰 클레임으로 호출자 정보 생성.

    Raises:
        AuthenticationException: 토큰이 없거나 유효하지 않은 경우
    """
    if not token:
        raise AuthenticationException("Not authorized, no token")

    payload = decode_access_token(token, settings)
    if not payload:
        raise invalid_token_error()

    user_id = payload.get("sub")
    if not user_id:
        raise invalid_token_error()

    role = payload.get("role", "buyer")
    if role not in PLATFORM_ROLES:
        raise invalid_token_error()

    return Caller(user_id=str(user_id), role=role, name=payload.get("name"))
