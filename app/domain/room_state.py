"""
Room / deal state machine.

채팅방 상태(open <-> resolved), 거래 상태(pending -> seller_marked -> completed),
관리자 중재 규칙을 한 곳에서 정의합니다.

모든 함수는 순수 함수입니다. 입력 ChatRoom은 절대 변경하지 않고, 성공하면
새 ChatRoom을 반환하며 실패하면 도메인 예외를 던집니다. 따라서 실패한 요청은
어떤 상태도 부분적으로 바꾸지 않습니다.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from app.core.errors import (
    AlreadyMediatedException,
    InvalidStateException,
    InvalidTransitionException,
    RoomClosedException,
    UnauthorizedActionException,
)
from app.domain.entities import (
    Caller,
    ChatRoom,
    DealStatus,
    Message,
    MessageKind,
    ParticipantRole,
    RoomAction,
    RoomStatus,
)

PARTIES = (ParticipantRole.BUYER, ParticipantRole.SELLER)


# =============================================================================
# 역할 판별
# =============================================================================

def resolve_role(room: ChatRoom, caller: Caller) -> Optional[ParticipantRole]:
    """호출자의 채팅방 내 역할 (참여자가 아니면 None)"""
    if caller.user_id == room.buyer_id:
        return ParticipantRole.BUYER
    if caller.user_id == room.seller_id:
        return ParticipantRole.SELLER
    if room.admin_id is not None and caller.user_id == room.admin_id:
        return ParticipantRole.ADMIN
    return None


def can_view(room: ChatRoom, caller: Caller) -> bool:
    """채팅방 조회 가능 여부 (참여자 또는 플랫폼 관리자)"""
    return resolve_role(room, caller) is not None or caller.is_admin


def require_viewer(room: ChatRoom, caller: Caller) -> None:
    if not can_view(room, caller):
        raise UnauthorizedActionException("Access denied to this chat room")


def _touch(room: ChatRoom, **changes) -> ChatRoom:
    changes["updated_at"] = datetime.utcnow()
    return room.model_copy(update=changes)


# =============================================================================
# Message Log
# =============================================================================

def authorize_post(room: ChatRoom, caller: Caller) -> ParticipantRole:
    """메시지 전송 가능 여부 확인 후 전송 시점의 역할 반환"""
    if room.status != RoomStatus.OPEN:
        raise RoomClosedException(room.id)
    role = resolve_role(room, caller)
    if role is None:
        raise UnauthorizedActionException("Access denied to this chat room")
    return role


def append_message(
    room: ChatRoom,
    sender_id: str,
    sender_role: ParticipantRole,
    content: str,
    kind: MessageKind = MessageKind.TEXT,
    preview_length: int = 100,
) -> Tuple[ChatRoom, Message]:
    """다음 시퀀스 번호로 메시지를 만들고 갱신된 채팅방과 함께 반환"""
    message = Message(
        room_id=room.id,
        seq=room.message_seq + 1,
        sender_id=sender_id,
        sender_role=sender_role,
        kind=kind,
        content=content,
    )
    changes = {"message_seq": message.seq}
    if kind == MessageKind.TEXT:
        changes["last_message"] = content[:preview_length]
        changes["last_message_at"] = message.created_at
    return _touch(room, **changes), message


# =============================================================================
# 관리자 중재
# =============================================================================

def request_admin(room: ChatRoom, caller: Caller) -> ChatRoom:
    """관리자 호출 플래그 설정 (이미 요청된 경우 그대로 반환)"""
    if resolve_role(room, caller) not in PARTIES:
        raise UnauthorizedActionException("Only buyer or seller can request an admin")
    if room.is_mediated:
        raise AlreadyMediatedException(room.admin_id)
    if room.admin_requested:
        return room
    return _touch(room, admin_requested=True)


def join_as_admin(room: ChatRoom, caller: Caller) -> ChatRoom:
    if not caller.is_admin:
        raise UnauthorizedActionException("Only admins can join chats")
    if resolve_role(room, caller) in PARTIES:
        raise UnauthorizedActionException("Admins cannot mediate their own deal")
    if room.is_mediated:
        raise AlreadyMediatedException(room.admin_id)
    return _touch(room, admin_id=caller.user_id, admin_requested=False)


# =============================================================================
# 채팅방 상태 (open <-> resolved)
# =============================================================================

def close_room(room: ChatRoom, caller: Caller) -> ChatRoom:
    if not caller.is_admin:
        raise InvalidTransitionException("Only admins can close chats")
    if not room.is_mediated:
        raise InvalidTransitionException("An admin must join the chat before it can be closed")
    if room.status != RoomStatus.OPEN:
        raise InvalidTransitionException("Chat is already resolved")
    return _touch(room, status=RoomStatus.RESOLVED)


def reopen_room(room: ChatRoom, caller: Caller) -> ChatRoom:
    if resolve_role(room, caller) not in PARTIES:
        raise UnauthorizedActionException("Only buyer or seller can reopen chat")
    if room.status != RoomStatus.RESOLVED:
        raise InvalidTransitionException("Chat is not resolved")
    return _touch(room, status=RoomStatus.OPEN)


# =============================================================================
# 거래 확정 프로토콜 (pending -> seller_marked -> completed)
# =============================================================================

def mark_deal_done(room: ChatRoom, caller: Caller) -> ChatRoom:
    if resolve_role(room, caller) != ParticipantRole.SELLER:
        raise UnauthorizedActionException("Only seller can mark deal as done")
    if room.status != RoomStatus.OPEN:
        raise InvalidStateException("Deal can only be marked in an open chat")
    if room.deal_status == DealStatus.COMPLETED:
        raise InvalidStateException("Deal already completed")
    if room.deal_status != DealStatus.PENDING:
        raise InvalidStateException("Deal already marked as done")
    return _touch(room, deal_status=DealStatus.SELLER_MARKED)


def confirm_deal(room: ChatRoom, caller: Caller) -> ChatRoom:
    if resolve_role(room, caller) != ParticipantRole.BUYER:
        raise UnauthorizedActionException("Only buyer can confirm deal")
    if room.deal_status == DealStatus.COMPLETED:
        raise InvalidStateException("Deal already completed")
    if room.deal_status != DealStatus.SELLER_MARKED:
        raise InvalidStateException("Seller must mark deal as done first")
    return _touch(room, deal_status=DealStatus.COMPLETED)


# =============================================================================
# 허용 동작 계산
# =============================================================================

_ACTION_CHECKS: Dict[RoomAction, Callable[[ChatRoom, Caller], object]] = {
    RoomAction.SEND_MESSAGE: authorize_post,
    RoomAction.REQUEST_ADMIN: request_admin,
    RoomAction.JOIN_AS_ADMIN: join_as_admin,
    RoomAction.CLOSE_ROOM: close_room,
    RoomAction.REOPEN_ROOM: reopen_room,
    RoomAction.MARK_DEAL_DONE: mark_deal_done,
    RoomAction.CONFIRM_DEAL: confirm_deal,
}


def allowed_actions(room: ChatRoom, caller: Caller) -> List[RoomAction]:
    """
    호출자가 현재 채팅방에서 수행할 수 있는 동작 목록.

    실제 전이 함수를 그대로 시험 실행하므로 화면 버튼과 서버 검증이
    항상 같은 규칙을 따릅니다.
    """
    actions = []
    for action, check in _ACTION_CHECKS.items():
        try:
            check(room, caller)
        except (
            UnauthorizedActionException,
            InvalidStateException,
            InvalidTransitionException,
            AlreadyMediatedException,
        ):
            continue
        actions.append(action)
    return actions
