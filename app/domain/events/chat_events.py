"""
Chat Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from .base import DomainEvent


@dataclass
class ChatRoomCreated(DomainEvent):
    """채팅방 생성 이벤트 (구매자가 상품 문의 시작)"""
    room_id: str
    product_id: str
    buyer_id: str
    seller_id: str
    is_purchased: bool
    timestamp: datetime


@dataclass
class AdminRequested(DomainEvent):
    """관리자 호출 이벤트 (알림 서비스가 관리자에게 전달)"""
    room_id: str
    product_id: str
    requested_by: str
    requester_role: str  # "buyer" or "seller"
    timestamp: datetime


@dataclass
class AdminJoined(DomainEvent):
    """관리자 입장 이벤트"""
    room_id: str
    admin_id: str
    timestamp: datetime


@dataclass
class ChatRoomResolved(DomainEvent):
    """채팅방 종료(resolved) 이벤트"""
    room_id: str
    closed_by: str
    timestamp: datetime


@dataclass
class ChatRoomReopened(DomainEvent):
    """채팅방 재개 이벤트"""
    room_id: str
    reopened_by: str
    reopened_role: str
    timestamp: datetime
