"""
Chat room / message entities.

저장소(MongoDB, in-memory)와 무관한 순수 도메인 모델입니다.
모든 엔티티는 불변(frozen)이며 상태 변경은 model_copy()로 새 인스턴스를 만듭니다.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


def new_object_id() -> str:
    """MongoDB와 호환되는 새 ID 문자열 생성"""
    return str(ObjectId())


class RoomStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class DealStatus(str, Enum):
    PENDING = "pending"
    SELLER_MARKED = "seller_marked"
    COMPLETED = "completed"


class ParticipantRole(str, Enum):
    """채팅방 안에서의 역할 (플랫폼 역할과 별개)"""
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class MessageKind(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


class RoomAction(str, Enum):
    SEND_MESSAGE = "send_message"
    REQUEST_ADMIN = "request_admin"
    JOIN_AS_ADMIN = "join_as_admin"
    CLOSE_ROOM = "close_room"
    REOPEN_ROOM = "reopen_room"
    MARK_DEAL_DONE = "mark_deal_done"
    CONFIRM_DEAL = "confirm_deal"


class Caller(BaseModel):
    """Identity 서비스가 보증한 요청자 정보"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: str = "buyer"  # 플랫폼 역할: buyer, developer, admin
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ChatRoom(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_object_id)
    product_id: str
    buyer_id: str
    seller_id: str
    admin_id: Optional[str] = None
    admin_requested: bool = False
    status: RoomStatus = RoomStatus.OPEN
    deal_status: DealStatus = DealStatus.PENDING
    is_purchased: bool = False
    last_message: str = ""
    last_message_at: datetime = Field(default_factory=datetime.utcnow)
    message_seq: int = 0
    revision: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_mediated(self) -> bool:
        return self.admin_id is not None

    def __repr__(self):
        return (
            f"<ChatRoom(id={self.id}, product_id={self.product_id}, "
            f"status={self.status.value}, deal_status={self.deal_status.value})>"
        )


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_object_id)
    room_id: str
    seq: int
    sender_id: str
    sender_role: ParticipantRole
    kind: MessageKind = MessageKind.TEXT
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def __repr__(self):
        return f"<Message(id={self.id}, room_id={self.room_id}, seq={self.seq}, sender_role={self.sender_role.value})>"
