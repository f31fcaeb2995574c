import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import WebSocket

from app.core.errors import BaseCustomException
from app.core.logging import log_websocket_event
from app.domain.entities import Caller
from app.services.chat_room_service import (
    EVENT_STOP_TYPING,
    EVENT_TYPING,
    ChatRoomService,
    room_event,
)
from app.websockets.connection_manager import RoomSubscription

logger = logging.getLogger(__name__)


def error_frame(error_code: str, message: str, details: Any = None) -> Dict[str, Any]:
    frame = {"type": "error", "error_code": error_code, "message": message}
    if details:
        frame["details"] = details
    return frame


class WebSocketMessageHandler:
    """WebSocket 수신 프레임 처리 핸들러 (연결 하나당 하나)"""

    def __init__(
        self,
        websocket: WebSocket,
        caller: Caller,
        room_id: str,
        service: ChatRoomService,
        subscription: RoomSubscription
    ):
        self.websocket = websocket
        self.caller = caller
        self.room_id = room_id
        self.service = service
        self.subscription = subscription

    async def handle_message(self, data: Dict[str, Any]):
        """
        WebSocket으로 받은 프레임을 처리합니다.

        Args:
            data: 클라이언트에서 전송한 프레임 ({"type": ..., ...})
        """
        message_type = data.get("type") if isinstance(data, dict) else None

        try:
            if message_type == "message":
                await self._handle_chat_message(data)
            elif message_type in (EVENT_TYPING, EVENT_STOP_TYPING):
                self._handle_typing_indicator(message_type)
            elif message_type == "ping":
                await self._handle_ping()
            else:
                logger.warning(f"Unknown message type: {message_type} from user {self.caller.user_id}")
                await self.websocket.send_json(
                    error_frame("unknown_type", f"Unsupported frame type: {message_type}")
                )
        except BaseCustomException as e:
            # 도메인 예외는 연결을 유지한 채 요청자에게만 알림
            await self.websocket.send_json(error_frame(e.error, e.message, e.details))

    async def _handle_chat_message(self, data: Dict[str, Any]):
        """채팅 메시지를 기록합니다. 전달은 RoomEventHub가 구독자 전체에 수행합니다."""
        message = await self.service.post_message(self.caller, self.room_id, data.get("content", ""))
        log_websocket_event(
            logger, "message", self.caller.user_id, self.room_id,
            message_id=message.id, seq=message.seq
        )

    def _handle_typing_indicator(self, event_type: str):
        """타이핑 상태를 같은 채팅방의 다른 구독자에게 전달합니다 (저장하지 않음)."""
        self.service.hub.publish(
            self.room_id,
            room_event(event_type, self.room_id, {
                "user_id": self.caller.user_id,
                "name": self.caller.name,
                "timestamp": datetime.utcnow().isoformat()
            }),
            exclude=self.subscription
        )

    async def _handle_ping(self):
        await self.websocket.send_json({
            "type": "pong",
            "timestamp": datetime.utcnow().isoformat()
        })
