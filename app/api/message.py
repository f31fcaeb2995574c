from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_chat_service, get_current_caller
from app.domain.entities import Caller
from app.schemas.message import MessageCreate, MessageList, MessageResponse
from app.services.chat_room_service import ChatRoomService

router = APIRouter(prefix="/chat", tags=["Messages"])


@router.get("/rooms/{room_id}/messages", response_model=MessageList)
async def get_messages(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> MessageList:
    """
    채팅방 메시지 목록 (오래된 순)

    재연결한 클라이언트는 이 목록으로 놓친 메시지를 다시 가져옵니다.
    """
    messages = await service.list_messages(caller, room_id)
    return MessageList(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages)
    )


@router.post("/rooms/{room_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: str,
    message_data: MessageCreate,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> MessageResponse:
    """
    메시지 전송

    - **content**: 메시지 내용 (최대 길이는 설정값 max_message_length)

    종료(resolved)된 채팅방에는 전송할 수 없습니다 (409 room_closed).
    """
    message = await service.post_message(caller, room_id, message_data.content)
    return MessageResponse.model_validate(message)


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> MessageResponse:
    """메시지 단건 조회"""
    message = await service.get_message(caller, message_id)
    return MessageResponse.model_validate(message)
