"""
Domain Events

모든 Domain Event의 기본 클래스 및 이벤트 정의
"""

from .base import DomainEvent
from .chat_events import (
    ChatRoomCreated,
    AdminRequested,
    AdminJoined,
    ChatRoomResolved,
    ChatRoomReopened,
)
from .deal_events import DealMarkedDone, DealCompleted
from .message_events import MessageSent

__all__ = [
    'DomainEvent',
    'ChatRoomCreated',
    'AdminRequested',
    'AdminJoined',
    'ChatRoomResolved',
    'ChatRoomReopened',
    'DealMarkedDone',
    'DealCompleted',
    'MessageSent',
]
