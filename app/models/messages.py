from datetime import datetime

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from app.domain.entities import Message, MessageKind, ParticipantRole


class MessageDocument(Document):
    id: str = Field(..., description="Message ID (ObjectId hex string)")
    room_id: str = Field(..., description="Room ID where message was sent")
    seq: int = Field(..., description="Per-room insertion sequence number")
    sender_id: str = Field(..., description="User ID who sent the message")
    sender_role: ParticipantRole = Field(..., description="Sender's role in the room at send time")
    kind: MessageKind = Field(default=MessageKind.TEXT, description="Type of message: text, system")
    content: str = Field(..., description="Message content")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "messages"
        indexes = [
            IndexModel([("room_id", ASCENDING), ("seq", ASCENDING)], unique=True, name="room_seq_unique"),
            [("sender_id", 1), ("created_at", -1)],  # For user message history
        ]

    @classmethod
    def from_entity(cls, message: Message) -> "MessageDocument":
        return cls(**message.model_dump())

    def to_entity(self) -> Message:
        return Message(**self.model_dump(exclude={"revision_id"}))

    def __repr__(self):
        return f"<MessageDocument(id={self.id}, room_id={self.room_id}, seq={self.seq})>"
