"""
API 공통 의존성
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.logging import user_id_var
from app.domain.entities import Caller
from app.services.chat_room_service import ChatRoomService
from app.utils.auth import caller_from_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_caller(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Caller:
    """Bearer 토큰에서 호출자 정보를 추출합니다 (없거나 유효하지 않으면 401)."""
    token = credentials.credentials if credentials else None
    caller = caller_from_token(token, request.app.state.settings)
    user_id_var.set(caller.user_id)
    return caller


def get_chat_service(request: Request) -> ChatRoomService:
    return request.app.state.chat_service
