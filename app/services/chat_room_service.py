"""
Chat room service layer.

채팅방 개설/조회, 메시지 기록, 관리자 중재, 거래 확정 프로토콜을 조율합니다.

같은 채팅방에 대한 변경은 방 단위 잠금 안에서 `불러오기 -> 전이 -> 저장 -> 실시간 전달`
순서로 처리되므로 상태 저장이 끝난 뒤에만 구독자에게 알림이 나가고, 방 단위 이벤트
순서가 유지됩니다. Kafka 통합 이벤트는 잠금 밖에서 발행합니다.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from app.core.config import Settings, settings as default_settings
from app.core.errors import (
    BusinessLogicException,
    UnauthorizedActionException,
    chat_room_not_found_error,
    message_not_found_error,
    product_not_found_error,
)
from app.core.logging import log_room_transition
from app.core.validators import Validator
from app.domain import room_state
from app.domain.entities import (
    Caller,
    ChatRoom,
    Message,
    MessageKind,
    ParticipantRole,
    RoomAction,
)
from app.domain.events import (
    AdminJoined,
    AdminRequested,
    ChatRoomCreated,
    ChatRoomReopened,
    ChatRoomResolved,
    DealMarkedDone,
    MessageSent,
)
from app.domain.events.base import DomainEvent
from app.infrastructure.kafka.config import KafkaConfig, kafka_config as default_kafka_config
from app.schemas.chat_room import ChatRoomResponse
from app.schemas.message import MessageResponse
from app.services.catalog_service import Catalog, ProductInfo, UserInfo
from app.services.event_publisher import EventPublisher
from app.services.room_locks import RoomLockRegistry
from app.services.room_store import RoomStore
from app.services.sales_service import SalesRecorder
from app.websockets.connection_manager import RoomEventHub

logger = logging.getLogger(__name__)

# 실시간 이벤트 타입
EVENT_MESSAGE = "message"
EVENT_ADMIN_JOINED = "admin-joined"
EVENT_ROOM_UPDATED = "room-updated"
EVENT_TYPING = "typing"
EVENT_STOP_TYPING = "stop-typing"

# 시스템 메시지
NOTICE_ADMIN_REQUESTED = "Admin has been requested to join this chat"
NOTICE_ADMIN_JOINED = "Admin has joined the chat"
NOTICE_ROOM_RESOLVED = "Chat has been marked as resolved by admin"
NOTICE_ROOM_REOPENED = "Chat has been reopened"
NOTICE_DEAL_MARKED = "Seller has marked the deal as done. Waiting for buyer confirmation."
NOTICE_DEAL_COMPLETED = "Deal completed! Sale has been recorded."


def room_event(event_type: str, room_id: str, data: dict) -> dict:
    """실시간 전달용 이벤트 프레임"""
    return {"type": event_type, "room_id": room_id, "data": data}


def message_payload(message: Message) -> dict:
    return MessageResponse.model_validate(message).model_dump(mode="json")


def room_payload(room: ChatRoom) -> dict:
    return ChatRoomResponse.model_validate(room).model_dump(mode="json")


@dataclass
class RoomChange:
    """상태 변경 동작의 결과"""
    room: ChatRoom
    notice: Optional[Message] = None
    changed: bool = True


@dataclass
class RoomView:
    """채팅방 상세 화면 데이터"""
    room: ChatRoom
    product: Optional[ProductInfo]
    participants: Dict[str, UserInfo]
    messages: List[Message]
    allowed_actions: List[RoomAction] = field(default_factory=list)


class ChatRoomService:
    def __init__(
        self,
        store: RoomStore,
        catalog: Catalog,
        publisher: EventPublisher,
        sales_recorder: SalesRecorder,
        hub: RoomEventHub,
        locks: Optional[RoomLockRegistry] = None,
        settings: Optional[Settings] = None,
        topics: Optional[KafkaConfig] = None
    ):
        self.store = store
        self.catalog = catalog
        self.publisher = publisher
        self.sales_recorder = sales_recorder
        self.hub = hub
        self.locks = locks or RoomLockRegistry()
        self.settings = settings or default_settings
        self.topics = topics or default_kafka_config

    # =========================================================================
    # 채팅방 개설 / 조회
    # =========================================================================

    async def open_room(self, caller: Caller, product_id: str) -> Tuple[ChatRoom, bool]:
        """
        상품 문의 채팅방 개설 (이미 있으면 기존 방 반환).

        Returns:
            Tuple[ChatRoom, bool]: (채팅방, 새로 생성 여부)
        """
        product = await self.catalog.get_product(product_id)
        if not product:
            raise product_not_found_error(product_id)

        if product.developer_id == caller.user_id:
            raise BusinessLogicException("You cannot chat with yourself")

        async with self.locks.hold(f"open:{product_id}:{caller.user_id}"):
            existing = await self.store.find_room(product_id, caller.user_id, product.developer_id)
            if existing:
                return existing, False

            room = ChatRoom(
                product_id=product_id,
                buyer_id=caller.user_id,
                seller_id=product.developer_id,
                is_purchased=await self.catalog.has_completed_order(product_id, caller.user_id)
            )
            stored = await self.store.insert_room(room)

        if stored.id != room.id:
            return stored, False

        logger.info(f"Chat room {room.id} opened by {caller.user_id} for product {product_id}")
        await self._emit(self.topics.topic_chat_events, ChatRoomCreated(
            room_id=room.id,
            product_id=room.product_id,
            buyer_id=room.buyer_id,
            seller_id=room.seller_id,
            is_purchased=room.is_purchased,
            timestamp=room.created_at
        ), key=room.id)
        return stored, True

    async def _load(self, room_id: str) -> ChatRoom:
        room = await self.store.get_room(room_id)
        if room is None:
            raise chat_room_not_found_error(room_id)
        return room

    async def get_room(self, caller: Caller, room_id: str) -> ChatRoom:
        room = await self._load(room_id)
        room_state.require_viewer(room, caller)
        return room

    async def get_room_view(self, caller: Caller, room_id: str) -> RoomView:
        """상품/참여자 정보와 메시지, 허용 동작을 포함한 채팅방 조회"""
        room = await self.get_room(caller, room_id)
        user_ids = [room.buyer_id, room.seller_id]
        if room.admin_id:
            user_ids.append(room.admin_id)

        return RoomView(
            room=room,
            product=await self.catalog.get_product(room.product_id),
            participants=await self.catalog.get_users(user_ids),
            messages=await self.store.list_messages(room.id),
            allowed_actions=room_state.allowed_actions(room, caller)
        )

    async def list_rooms_for(self, caller: Caller) -> List[ChatRoom]:
        """내 채팅방 목록 (관리자는 중재 중인 방 포함)"""
        return await self.store.list_rooms_for_user(caller.user_id, include_admin=caller.is_admin)

    async def list_all_rooms(self, caller: Caller) -> List[ChatRoom]:
        if not caller.is_admin:
            raise UnauthorizedActionException("Access denied")
        return await self.store.list_all_rooms()

    async def allowed_actions_for(self, caller: Caller, room_id: str) -> List[RoomAction]:
        room = await self.get_room(caller, room_id)
        return room_state.allowed_actions(room, caller)

    # =========================================================================
    # Message Log
    # =========================================================================

    async def post_message(self, caller: Caller, room_id: str, content: str) -> Message:
        content = Validator.validate_message_content(content, max_length=self.settings.max_message_length)

        async with self.locks.hold(room_id):
            room = await self._load(room_id)
            role = room_state.authorize_post(room, caller)
            updated, message = room_state.append_message(
                room, caller.user_id, role, content,
                preview_length=self.settings.last_message_preview_length
            )
            await self.store.save_room(updated, room.revision, [message])
            self.hub.publish(room_id, room_event(EVENT_MESSAGE, room_id, message_payload(message)))

        await self._emit_message(message)
        return message

    async def list_messages(self, caller: Caller, room_id: str) -> List[Message]:
        """오래된 순 전체 메시지 (반복 호출해도 같은 순서)"""
        room = await self.get_room(caller, room_id)
        return await self.store.list_messages(room.id)

    async def get_message(self, caller: Caller, message_id: str) -> Message:
        message = await self.store.get_message(message_id)
        if message is None:
            raise message_not_found_error(message_id)
        await self.get_room(caller, message.room_id)
        return message

    # =========================================================================
    # 상태 변경 공통 처리
    # =========================================================================

    async def _mutate(
        self,
        caller: Caller,
        room_id: str,
        action: str,
        transition: Callable[[ChatRoom, Caller], ChatRoom],
        notice: str,
        extra_event: Optional[str] = None
    ) -> RoomChange:
        async with self.locks.hold(room_id):
            room = await self._load(room_id)
            updated = transition(room, caller)
            if updated is room:
                return RoomChange(room=room, changed=False)

            updated, message = self._with_notice(updated, caller, notice)
            saved = await self.store.save_room(updated, room.revision, [message])
            log_room_transition(
                logger, action, room_id, caller.user_id,
                saved.status.value, saved.deal_status.value
            )
            self._fan_out(saved, message, extra_event)

        await self._emit_message(message)
        return RoomChange(room=saved, notice=message)

    def _with_notice(self, room: ChatRoom, caller: Caller, notice: str) -> Tuple[ChatRoom, Message]:
        # 방 참여자가 아닌 플랫폼 관리자(예: 다른 관리자의 종료 처리)는 admin 역할로 기록
        role = room_state.resolve_role(room, caller) or ParticipantRole.ADMIN
        return room_state.append_message(
            room, caller.user_id, role, notice,
            kind=MessageKind.SYSTEM,
            preview_length=self.settings.last_message_preview_length
        )

    def _fan_out(self, room: ChatRoom, notice: Message, extra_event: Optional[str] = None) -> None:
        self.hub.publish(room.id, room_event(EVENT_MESSAGE, room.id, message_payload(notice)))
        if extra_event == EVENT_ADMIN_JOINED:
            self.hub.publish(room.id, room_event(EVENT_ADMIN_JOINED, room.id, {
                "admin_id": room.admin_id,
                "room": room_payload(room)
            }))
        self.hub.publish(room.id, room_event(EVENT_ROOM_UPDATED, room.id, room_payload(room)))

    async def _emit(self, topic: str, event: DomainEvent, key: str) -> None:
        await self.publisher.publish_best_effort(topic, event, key=key)

    async def _emit_message(self, message: Message) -> None:
        await self._emit(self.topics.topic_message_events, MessageSent(
            message_id=message.id,
            room_id=message.room_id,
            seq=message.seq,
            sender_id=message.sender_id,
            sender_role=message.sender_role.value,
            kind=message.kind.value,
            content=message.content,
            timestamp=message.created_at
        ), key=message.room_id)

    # =========================================================================
    # 관리자 중재
    # =========================================================================

    async def request_admin(self, caller: Caller, room_id: str) -> RoomChange:
        """관리자 호출 (배정은 하지 않고 알림만 요청)"""
        change = await self._mutate(
            caller, room_id, "request_admin", room_state.request_admin, NOTICE_ADMIN_REQUESTED
        )
        if change.changed:
            room = change.room
            await self._emit(self.topics.topic_notification_events, AdminRequested(
                room_id=room.id,
                product_id=room.product_id,
                requested_by=caller.user_id,
                requester_role=room_state.resolve_role(room, caller).value,
                timestamp=room.updated_at
            ), key=room.id)
        return change

    async def join_as_admin(self, caller: Caller, room_id: str) -> RoomChange:
        change = await self._mutate(
            caller, room_id, "join_as_admin", room_state.join_as_admin, NOTICE_ADMIN_JOINED,
            extra_event=EVENT_ADMIN_JOINED
        )
        await self._emit(self.topics.topic_chat_events, AdminJoined(
            room_id=room_id,
            admin_id=caller.user_id,
            timestamp=change.room.updated_at
        ), key=room_id)
        return change

    async def close_room(self, caller: Caller, room_id: str) -> RoomChange:
        change = await self._mutate(
            caller, room_id, "close_room", room_state.close_room, NOTICE_ROOM_RESOLVED
        )
        await self._emit(self.topics.topic_chat_events, ChatRoomResolved(
            room_id=room_id,
            closed_by=caller.user_id,
            timestamp=change.room.updated_at
        ), key=room_id)
        return change

    async def reopen_room(self, caller: Caller, room_id: str) -> RoomChange:
        change = await self._mutate(
            caller, room_id, "reopen_room", room_state.reopen_room, NOTICE_ROOM_REOPENED
        )
        await self._emit(self.topics.topic_chat_events, ChatRoomReopened(
            room_id=room_id,
            reopened_by=caller.user_id,
            reopened_role=room_state.resolve_role(change.room, caller).value,
            timestamp=change.room.updated_at
        ), key=room_id)
        return change

    # =========================================================================
    # 거래 확정 프로토콜
    # =========================================================================

    async def mark_deal_done(self, caller: Caller, room_id: str) -> RoomChange:
        change = await self._mutate(
            caller, room_id, "mark_deal_done", room_state.mark_deal_done, NOTICE_DEAL_MARKED
        )
        room = change.room
        await self._emit(self.topics.topic_chat_events, DealMarkedDone(
            room_id=room.id,
            product_id=room.product_id,
            seller_id=room.seller_id,
            timestamp=room.updated_at
        ), key=room.id)
        return change

    async def confirm_deal(self, caller: Caller, room_id: str) -> RoomChange:
        """
        구매자 거래 확정.

        방 잠금 안에서 판매 기록을 먼저 요청하고, 성공한 경우에만 거래 완료 상태와
        완료 안내 메시지를 한 번에 저장합니다. 판매 기록에 실패하면 방은 저장되지
        않으므로 다른 조회에서 seller_marked 외의 상태가 보이지 않습니다.
        """
        async with self.locks.hold(room_id):
            room = await self._load(room_id)
            completed = room_state.confirm_deal(room, caller)

            product = await self.catalog.get_product(room.product_id)
            if not product:
                raise product_not_found_error(room.product_id)

            await self.sales_recorder.record_sale(completed, product)

            updated, message = self._with_notice(completed, caller, NOTICE_DEAL_COMPLETED)
            try:
                saved = await self.store.save_room(updated, room.revision, [message])
            except Exception:
                logger.error(f"Sale recorded but deal state was not saved for room {room_id}")
                raise
            log_room_transition(
                logger, "confirm_deal", room_id, caller.user_id,
                saved.status.value, saved.deal_status.value,
                price=product.price
            )
            self._fan_out(saved, message)

        await self._emit_message(message)
        return RoomChange(room=saved, notice=message)
