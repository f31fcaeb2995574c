"""
Message Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from .base import DomainEvent


@dataclass
class MessageSent(DomainEvent):
    """메시지 전송 이벤트"""
    message_id: str
    room_id: str
    seq: int
    sender_id: str
    sender_role: str  # "buyer", "seller", "admin"
    kind: str  # "text", "system"
    content: str
    timestamp: datetime
