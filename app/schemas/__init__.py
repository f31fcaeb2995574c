from .chat_room import (
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
from .message import MessageCreate, MessageList, MessageResponse

__all__ = [
    "AllowedActionsResponse",
    "ChatRoomCreate",
    "ChatRoomDetail",
    "ChatRoomList",
    "ChatRoomOpenResponse",
    "ChatRoomResponse",
    "ParticipantSummary",
    "ProductSummary",
    "RoomActionResponse",
    "MessageCreate",
    "MessageList",
    "MessageResponse",
]
