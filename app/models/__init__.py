from .chat_rooms import ChatRoomDocument
from .messages import MessageDocument

__all__ = [
    "ChatRoomDocument",
    "MessageDocument",
]
