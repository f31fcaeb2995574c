"""
Chat room persistence.

채팅방과 메시지 저장소. 채팅방 저장은 revision 기반 낙관적 동시성 검사를 거치며,
같은 저장 요청에 포함된 메시지는 채팅방 갱신이 성공한 뒤에만 기록됩니다.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pymongo.errors import DuplicateKeyError

from app.core.errors import ConcurrentModificationException, chat_room_not_found_error
from app.domain.entities import ChatRoom, Message
from app.models.chat_rooms import ChatRoomDocument
from app.models.messages import MessageDocument

logger = logging.getLogger(__name__)


class RoomStore:
    """채팅방 / 메시지 저장소 인터페이스"""

    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        raise NotImplementedError

    async def find_room(self, product_id: str, buyer_id: str, seller_id: str) -> Optional[ChatRoom]:
        raise NotImplementedError

    async def insert_room(self, room: ChatRoom) -> ChatRoom:
        """
        새 채팅방 저장.

        같은 (상품, 구매자, 판매자) 조합의 방이 이미 있으면 기존 방을 반환합니다.
        """
        raise NotImplementedError

    async def save_room(
        self,
        room: ChatRoom,
        expected_revision: int,
        new_messages: Sequence[Message] = ()
    ) -> ChatRoom:
        """
        채팅방 갱신 (revision 검사 후 revision + 1로 저장).

        Raises:
            ConcurrentModificationException: 저장된 revision이 expected_revision과 다른 경우
        """
        raise NotImplementedError

    async def append_message(self, message: Message) -> Message:
        raise NotImplementedError

    async def list_messages(self, room_id: str) -> List[Message]:
        """seq 오름차순 전체 메시지"""
        raise NotImplementedError

    async def get_message(self, message_id: str) -> Optional[Message]:
        raise NotImplementedError

    async def list_rooms_for_user(self, user_id: str, include_admin: bool = False) -> List[ChatRoom]:
        """참여 중인 채팅방 (최근 메시지 순)"""
        raise NotImplementedError

    async def list_all_rooms(self) -> List[ChatRoom]:
        raise NotImplementedError


def _by_recent_message(rooms: List[ChatRoom]) -> List[ChatRoom]:
    return sorted(rooms, key=lambda r: r.last_message_at, reverse=True)


class InMemoryRoomStore(RoomStore):
    """프로세스 메모리 저장소 (로컬 실행, 테스트용)"""

    def __init__(self):
        self.rooms: Dict[str, ChatRoom] = {}
        self.messages: Dict[str, List[Message]] = {}
        self._messages_by_id: Dict[str, Message] = {}

    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        return self.rooms.get(room_id)

    async def find_room(self, product_id: str, buyer_id: str, seller_id: str) -> Optional[ChatRoom]:
        for room in self.rooms.values():
            if (room.product_id, room.buyer_id, room.seller_id) == (product_id, buyer_id, seller_id):
                return room
        return None

    async def insert_room(self, room: ChatRoom) -> ChatRoom:
        existing = await self.find_room(room.product_id, room.buyer_id, room.seller_id)
        if existing:
            return existing
        self.rooms[room.id] = room
        self.messages[room.id] = []
        return room

    async def save_room(
        self,
        room: ChatRoom,
        expected_revision: int,
        new_messages: Sequence[Message] = ()
    ) -> ChatRoom:
        current = self.rooms.get(room.id)
        if current is None:
            raise chat_room_not_found_error(room.id)
        if current.revision != expected_revision:
            raise ConcurrentModificationException(room.id)

        saved = room.model_copy(update={"revision": expected_revision + 1})
        self.rooms[room.id] = saved
        for message in new_messages:
            await self.append_message(message)
        return saved

    async def append_message(self, message: Message) -> Message:
        self.messages.setdefault(message.room_id, []).append(message)
        self._messages_by_id[message.id] = message
        return message

    async def list_messages(self, room_id: str) -> List[Message]:
        return sorted(self.messages.get(room_id, []), key=lambda m: m.seq)

    async def get_message(self, message_id: str) -> Optional[Message]:
        return self._messages_by_id.get(message_id)

    async def list_rooms_for_user(self, user_id: str, include_admin: bool = False) -> List[ChatRoom]:
        rooms = [
            room for room in self.rooms.values()
            if user_id in (room.buyer_id, room.seller_id)
            or (include_admin and room.admin_id == user_id)
        ]
        return _by_recent_message(rooms)

    async def list_all_rooms(self) -> List[ChatRoom]:
        return _by_recent_message(list(self.rooms.values()))


def _plain(fields: dict) -> dict:
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


def _mongo_fields(room: ChatRoom) -> dict:
    """enum 값을 문자열로 풀어낸 $set 용 필드"""
    return _plain(room.model_dump(exclude={"id"}))


def _message_fields(message: Message) -> dict:
    fields = message.model_dump()
    fields["_id"] = fields.pop("id")
    return _plain(fields)


class MongoRoomStore(RoomStore):
    """Beanie 문서 기반 MongoDB 저장소"""

    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        doc = await ChatRoomDocument.get(room_id)
        return doc.to_entity() if doc else None

    async def find_room(self, product_id: str, buyer_id: str, seller_id: str) -> Optional[ChatRoom]:
        doc = await ChatRoomDocument.find_one({
            "product_id": product_id,
            "buyer_id": buyer_id,
            "seller_id": seller_id
        })
        return doc.to_entity() if doc else None

    async def insert_room(self, room: ChatRoom) -> ChatRoom:
        try:
            await ChatRoomDocument.from_entity(room).insert()
            return room
        except DuplicateKeyError:
            # 다른 인스턴스가 같은 조합의 방을 먼저 만든 경우
            existing = await self.find_room(room.product_id, room.buyer_id, room.seller_id)
            if existing is None:
                raise
            return existing

    async def save_room(
        self,
        room: ChatRoom,
        expected_revision: int,
        new_messages: Sequence[Message] = ()
    ) -> ChatRoom:
        saved = room.model_copy(update={"revision": expected_revision + 1})
        collection = ChatRoomDocument.get_motor_collection()
        result = await collection.update_one(
            {"_id": room.id, "revision": expected_revision},
            {"$set": _mongo_fields(saved)}
        )

        if result.matched_count == 0:
            if await ChatRoomDocument.get(room.id) is None:
                raise chat_room_not_found_error(room.id)
            raise ConcurrentModificationException(room.id)

        # revision 검사를 통과해 seq가 이 저장에 확정된 뒤에만 메시지를 기록
        for message in new_messages:
            await self._write_message(message)
        return saved

    async def _write_message(self, message: Message) -> None:
        collection = MessageDocument.get_motor_collection()
        document = _message_fields(message)
        try:
            await collection.insert_one(document)
        except DuplicateKeyError:
            # 같은 seq를 가진 다른 문서는 채팅방 갱신까지 가지 못한 이전 저장의 잔여물
            stale = await collection.delete_one({
                "room_id": message.room_id,
                "seq": message.seq,
                "_id": {"$ne": message.id}
            })
            if stale.deleted_count == 0:
                return  # 같은 메시지가 이미 저장됨
            logger.warning(f"Replaced stale message at seq {message.seq} in room {message.room_id}")
            await collection.insert_one(document)

    async def append_message(self, message: Message) -> Message:
        await self._write_message(message)
        return message

    async def list_messages(self, room_id: str) -> List[Message]:
        docs = await MessageDocument.find({"room_id": room_id}).sort("+seq").to_list()
        return [doc.to_entity() for doc in docs]

    async def get_message(self, message_id: str) -> Optional[Message]:
        doc = await MessageDocument.get(message_id)
        return doc.to_entity() if doc else None

    async def list_rooms_for_user(self, user_id: str, include_admin: bool = False) -> List[ChatRoom]:
        conditions = [{"buyer_id": user_id}, {"seller_id": user_id}]
        if include_admin:
            conditions.append({"admin_id": user_id})

        docs = await ChatRoomDocument.find({"$or": conditions}).sort("-last_message_at").to_list()
        return [doc.to_entity() for doc in docs]

    async def list_all_rooms(self) -> List[ChatRoom]:
        docs = await ChatRoomDocument.find_all().sort("-last_message_at").to_list()
        return [doc.to_entity() for doc in docs]
