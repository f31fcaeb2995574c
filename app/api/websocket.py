import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.errors import BaseCustomException
from app.core.logging import log_websocket_event
from app.websockets.auth import authenticate_websocket
from app.websockets.handlers import WebSocketMessageHandler, error_frame

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/chat/{room_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    room_id: str,
):
    """
    채팅방 WebSocket 연결 엔드포인트

    Args:
        websocket: WebSocket 연결 객체
        room_id: 채팅방 ID
    """
    service = websocket.app.state.chat_service
    hub = websocket.app.state.event_hub

    await websocket.accept()

    # 1. WebSocket 인증
    caller = await authenticate_websocket(websocket, websocket.app.state.settings)
    if not caller:
        return

    # 2. 채팅방 접근 권한 확인
    try:
        room = await service.get_room(caller, room_id)
    except BaseCustomException as e:
        logger.warning(f"User {caller.user_id} denied access to room {room_id}: {e}")
        await websocket.send_json(error_frame(e.error, e.message, e.details))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # 3. 구독 등록
    subscription = await hub.subscribe(room_id, websocket, caller.user_id)
    handler = WebSocketMessageHandler(websocket, caller, room_id, service, subscription)
    log_websocket_event(logger, "connected", caller.user_id, room_id)

    try:
        # 4. 연결 환영 메시지 (재연결 시 상태 재조회 기준점)
        await websocket.send_json({
            "type": "connection_established",
            "room_id": room_id,
            "user_id": caller.user_id,
            "status": room.status.value,
            "deal_status": room.deal_status.value,
            "online_users": hub.get_room_users(room_id)
        })

        # 5. 메시지 수신 루프
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.error(f"Invalid JSON from user {caller.user_id}: {e}")
                await websocket.send_json(error_frame("invalid_json", "잘못된 메시지 형식입니다."))
                continue

            # 허브가 구독을 끊고 연결 종료를 보낸 뒤에 도착한 프레임은 처리하지 않음
            if not subscription.active:
                log_websocket_event(logger, "dropped", caller.user_id, room_id)
                break

            await handler.handle_message(data)

    except WebSocketDisconnect:
        # 정상적인 연결 해제
        log_websocket_event(logger, "disconnected", caller.user_id, room_id)

    except Exception as e:
        logger.error(f"Unexpected error in WebSocket connection for user {caller.user_id}: {e}")

    finally:
        # 6. 구독 해제
        await hub.unsubscribe(subscription)
