from typing import Optional
from fastapi import WebSocket, status
import logging

from app.core.config import Settings
from app.core.errors import BaseCustomException
from app.core.logging import log_security_event
from app.domain.entities import Caller
from app.utils.auth import caller_from_token, extract_bearer_token

logger = logging.getLogger(__name__)


async def authenticate_websocket(websocket: WebSocket, settings: Settings) -> Optional[Caller]:
    """
    WebSocket 연결에서 JWT 토큰을 검증하고 호출자 정보를 반환합니다.

    토큰은 Authorization 헤더(Bearer) 또는 token 쿼리 파라미터로 받습니다.
    브라우저 WebSocket API는 헤더를 지정할 수 없기 때문입니다.

    Returns:
        Caller: 인증된 호출자, 인증 실패 시 연결을 닫고 None
    """
    token = extract_bearer_token(websocket.headers.get("Authorization"))
    if not token:
        token = websocket.query_params.get("token")

    try:
        caller = caller_from_token(token, settings)
    except BaseCustomException as e:
        log_security_event(
            logger, "websocket_auth_failed",
            severity="low",
            ip_address=websocket.client.host if websocket.client else None,
            reason=e.message
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    logger.info(f"WebSocket authentication successful for user: {caller.user_id}")
    return caller
