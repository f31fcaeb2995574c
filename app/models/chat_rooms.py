from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel

from app.domain.entities import ChatRoom, DealStatus, RoomStatus


class ChatRoomDocument(Document):
    id: str = Field(..., description="Room ID (ObjectId hex string)")
    product_id: str = Field(..., description="Product the deal is about")
    buyer_id: str = Field(..., description="Buyer user ID")
    seller_id: str = Field(..., description="Seller (product developer) user ID")
    admin_id: Optional[str] = Field(None, description="Mediating admin, set once")
    admin_requested: bool = Field(default=False)
    status: RoomStatus = Field(default=RoomStatus.OPEN)
    deal_status: DealStatus = Field(default=DealStatus.PENDING)
    is_purchased: bool = Field(default=False)
    last_message: str = Field(default="")
    last_message_at: datetime = Field(default_factory=datetime.utcnow)
    message_seq: int = Field(default=0, description="Last assigned message sequence number")
    revision: int = Field(default=0, description="Optimistic concurrency counter")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "chat_rooms"
        indexes = [
            IndexModel(
                [("product_id", ASCENDING), ("buyer_id", ASCENDING), ("seller_id", ASCENDING)],
                unique=True,
                name="product_buyer_seller_unique"
            ),
            [("buyer_id", 1), ("last_message_at", -1)],  # 구매자 채팅방 목록
            [("seller_id", 1), ("last_message_at", -1)],  # 판매자 채팅방 목록
            [("admin_id", 1), ("last_message_at", -1)],  # 관리자 중재 목록
            IndexModel([("status", ASCENDING), ("last_message_at", DESCENDING)]),
        ]

    @classmethod
    def from_entity(cls, room: ChatRoom) -> "ChatRoomDocument":
        return cls(**room.model_dump())

    def to_entity(self) -> ChatRoom:
        return ChatRoom(**self.model_dump(exclude={"revision_id"}))

    def __repr__(self):
        return f"<ChatRoomDocument(id={self.id}, product_id={self.product_id}, status={self.status})>"
