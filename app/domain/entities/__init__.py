"""
Chat Context Entities

채팅방, 메시지, 호출자(Caller) 도메인 모델
"""

from .chat_room import (
    Caller,
    ChatRoom,
    DealStatus,
    Message,
    MessageKind,
    ParticipantRole,
    RoomAction,
    RoomStatus,
    new_object_id,
)

__all__ = [
    'Caller',
    'ChatRoom',
    'DealStatus',
    'Message',
    'MessageKind',
    'ParticipantRole',
    'RoomAction',
    'RoomStatus',
    'new_object_id',
]
