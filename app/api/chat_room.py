from typing import Dict, Optional

from fastapi import APIRouter, Depends, Response, status

from app.api.dependencies import get_chat_service, get_current_caller
from app.core.validators import Validator
from app.domain.entities import Caller
from app.schemas.chat_room import (
    AllowedActionsResponse,
    ChatRoomCreate,
    ChatRoomDetail,
    ChatRoomList,
    ChatRoomOpenResponse,
    ChatRoomResponse,
    ParticipantSummary,
    ProductSummary,
    RoomActionResponse,
)
from app.schemas.message import MessageResponse
from app.services.catalog_service import UserInfo
from app.services.chat_room_service import ChatRoomService, RoomChange

router = APIRouter(prefix="/chat", tags=["Chat Rooms"])


def _participant(user_id: Optional[str], users: Dict[str, UserInfo]) -> Optional[ParticipantSummary]:
    if user_id is None:
        return None
    user = users.get(user_id)
    if user is None:
        return ParticipantSummary(id=user_id)
    return ParticipantSummary(id=user.id, name=user.name, email=user.email)


def _action_response(change: RoomChange, detail: str) -> RoomActionResponse:
    return RoomActionResponse(
        room=ChatRoomResponse.model_validate(change.room),
        message=MessageResponse.model_validate(change.notice) if change.notice else None,
        detail=detail
    )


@router.post("/rooms", response_model=ChatRoomOpenResponse)
async def open_chat_room(
    room_data: ChatRoomCreate,
    response: Response,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> ChatRoomOpenResponse:
    """
    상품 문의 채팅방 개설

    - **product_id**: 문의할 상품 ID

    같은 상품에 대해 이미 개설한 채팅방이 있으면 기존 채팅방을 반환합니다 (200).
    새로 만든 경우 201을 반환합니다.
    """
    Validator.validate_required(room_data.product_id, "product_id")
    Validator.validate_object_id(room_data.product_id, "product_id")
    room, is_new = await service.open_room(caller, room_data.product_id)
    if is_new:
        response.status_code = status.HTTP_201_CREATED
    return ChatRoomOpenResponse(room=ChatRoomResponse.model_validate(room), is_new=is_new)


@router.get("/rooms", response_model=ChatRoomList)
async def get_my_chat_rooms(
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> ChatRoomList:
    """내 채팅방 목록 (최근 메시지 순, 관리자는 중재 중인 채팅방 포함)"""
    rooms = await service.list_rooms_for(caller)
    return ChatRoomList(rooms=[ChatRoomResponse.model_validate(r) for r in rooms], total=len(rooms))


@router.get("/admin/rooms", response_model=ChatRoomList)
async def get_all_chat_rooms(
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> ChatRoomList:
    """전체 채팅방 목록 (관리자 전용)"""
    rooms = await service.list_all_rooms(caller)
    return ChatRoomList(rooms=[ChatRoomResponse.model_validate(r) for r in rooms], total=len(rooms))


@router.get("/rooms/{room_id}", response_model=ChatRoomDetail)
async def get_chat_room(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> ChatRoomDetail:
    """채팅방 상세 (상품/참여자 정보, 메시지, 호출자의 허용 동작)"""
    view = await service.get_room_view(caller, room_id)
    room = view.room

    return ChatRoomDetail(
        room=ChatRoomResponse.model_validate(room),
        product=ProductSummary(
            id=view.product.id, name=view.product.name, price=view.product.price
        ) if view.product else None,
        buyer=_participant(room.buyer_id, view.participants),
        seller=_participant(room.seller_id, view.participants),
        admin=_participant(room.admin_id, view.participants),
        messages=[MessageResponse.model_validate(m) for m in view.messages],
        allowed_actions=view.allowed_actions
    )


@router.get("/rooms/{room_id}/actions", response_model=AllowedActionsResponse)
async def get_allowed_actions(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> AllowedActionsResponse:
    """호출자가 현재 채팅방에서 수행할 수 있는 동작 목록"""
    actions = await service.allowed_actions_for(caller, room_id)
    return AllowedActionsResponse(room_id=room_id, allowed_actions=actions)


# =============================================================================
# 관리자 중재
# =============================================================================

@router.post("/rooms/{room_id}/request-admin", response_model=RoomActionResponse)
async def request_admin(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """관리자 호출 (구매자/판매자)"""
    change = await service.request_admin(caller, room_id)
    detail = "Admin has been notified and will join soon" if change.changed else "Admin has already been requested"
    return _action_response(change, detail)


@router.post("/rooms/{room_id}/join-admin", response_model=RoomActionResponse)
async def join_as_admin(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """관리자로 채팅방 참여 (관리자 전용)"""
    change = await service.join_as_admin(caller, room_id)
    return _action_response(change, "Successfully joined chat as admin")


@router.post("/rooms/{room_id}/close", response_model=RoomActionResponse)
async def close_chat_room(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """채팅방 종료 처리 (관리자 전용)"""
    change = await service.close_room(caller, room_id)
    return _action_response(change, "Chat room closed successfully")


@router.post("/rooms/{room_id}/reopen", response_model=RoomActionResponse)
async def reopen_chat_room(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """종료된 채팅방 재개 (구매자/판매자)"""
    change = await service.reopen_room(caller, room_id)
    return _action_response(change, "Chat reopened successfully")


# =============================================================================
# 거래 확정
# =============================================================================

@router.post("/rooms/{room_id}/mark-deal-done", response_model=RoomActionResponse)
async def mark_deal_done(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """판매자 거래 완료 표시"""
    change = await service.mark_deal_done(caller, room_id)
    return _action_response(change, "Deal marked as done. Waiting for buyer confirmation.")


@router.post("/rooms/{room_id}/confirm-deal", response_model=RoomActionResponse)
async def confirm_deal(
    room_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ChatRoomService = Depends(get_chat_service)
) -> RoomActionResponse:
    """구매자 거래 확정 (판매 기록 요청)"""
    change = await service.confirm_deal(caller, room_id)
    return _action_response(change, "Deal confirmed successfully!")
