"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- connection_manager: 채팅방 구독과 이벤트 전달 (RoomEventHub)
- auth: WebSocket 인증 처리
- handlers: 수신 프레임 처리 핸들러
"""

from .connection_manager import RoomEventHub, RoomSubscription

__all__ = [
    "RoomEventHub",
    "RoomSubscription",
]
