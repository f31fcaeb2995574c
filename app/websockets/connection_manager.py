"""
채팅방 실시간 이벤트 허브

WebSocket 연결을 채팅방 단위로 구독시키고 message / admin-joined / room-updated
이벤트를 전달합니다. 송신이 밀리거나 실패한 구독은 끊고 연결을 닫아, 클라이언트가
재연결 후 채팅방 상태를 다시 조회하도록 합니다.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# 구독이 끊긴 연결을 닫을 때 사용하는 WebSocket 종료 코드 (1011: 서버 측 오류)
DROPPED_CLOSE_CODE = 1011


class RoomConnection(Protocol):
    """JSON 프레임을 보내고 닫을 수 있는 연결 (FastAPI WebSocket 등)"""

    async def send_json(self, data: Any) -> None:
        ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        ...


class RoomSubscription:
    """채팅방 구독 하나. 전용 송신 큐와 송신 태스크를 가집니다."""

    def __init__(self, room_id: str, connection: RoomConnection, user_id: Optional[str], queue_size: int):
        self.room_id = room_id
        self.connection = connection
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.task: Optional[asyncio.Task] = None
        self.close_task: Optional[asyncio.Task] = None
        self.active = True
        self.dropped = asyncio.Event()

    def __repr__(self):
        return f"<RoomSubscription(room_id={self.room_id}, user_id={self.user_id}, active={self.active})>"


class RoomEventHub:
    """
    채팅방 단위 실시간 이벤트 전달.

    publish()는 동기 함수로 각 구독의 큐에 이벤트를 넣기만 하므로 채팅방 변경을
    막지 않습니다. 같은 방의 이벤트는 publish 순서대로 큐에 들어가고 구독마다
    하나의 태스크가 순서대로 전송하므로 방 단위 순서가 유지됩니다.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        # 채팅방별 구독 목록: {room_id: [subscription, ...]}
        self.room_subscriptions: Dict[str, List[RoomSubscription]] = {}

    async def subscribe(
        self,
        room_id: str,
        connection: RoomConnection,
        user_id: Optional[str] = None
    ) -> RoomSubscription:
        """연결을 채팅방 이벤트 수신자로 등록합니다."""
        subscription = RoomSubscription(room_id, connection, user_id, self.queue_size)
        subscription.task = asyncio.create_task(self._drain(subscription))
        self.room_subscriptions.setdefault(room_id, []).append(subscription)
        logger.info(f"User {user_id} subscribed to room {room_id}")
        return subscription

    async def unsubscribe(self, subscription: RoomSubscription) -> None:
        """구독 해제 (연결 종료 시 반드시 호출)"""
        self._detach(subscription)
        if subscription.task and subscription.task is not asyncio.current_task():
            subscription.task.cancel()
            try:
                await subscription.task
            except asyncio.CancelledError:
                pass
        self._clear_queue(subscription)
        logger.info(f"User {subscription.user_id} unsubscribed from room {subscription.room_id}")

    def publish(self, room_id: str, event: dict, exclude: Optional[RoomSubscription] = None) -> int:
        """
        채팅방 구독자 전체에 이벤트를 전달합니다.

        Returns:
            int: 이벤트를 받은 구독 수
        """
        delivered = 0
        for subscription in list(self.room_subscriptions.get(room_id, [])):
            if subscription is exclude:
                continue
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    f"Outbox full for user {subscription.user_id} in room {room_id}, dropping subscription"
                )
                self._drop(subscription, "outbox full")
        return delivered

    async def _drain(self, subscription: RoomSubscription) -> None:
        while subscription.active:
            event = await subscription.queue.get()
            try:
                await subscription.connection.send_json(event)
            except Exception as e:
                logger.error(
                    f"Failed to send event to user {subscription.user_id} "
                    f"in room {subscription.room_id}: {e}"
                )
                self._drop(subscription, "event delivery failed")
                return
            finally:
                subscription.queue.task_done()

    def _detach(self, subscription: RoomSubscription) -> None:
        subscription.active = False
        subscriptions = self.room_subscriptions.get(subscription.room_id)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
            # 구독자가 없으면 방 자체를 제거
            if not subscriptions:
                del self.room_subscriptions[subscription.room_id]

    def _drop(self, subscription: RoomSubscription, reason: str) -> None:
        """구독을 끊고 연결 종료를 예약합니다. 클라이언트는 재연결 후 상태를 다시 조회합니다."""
        if not subscription.active:
            return
        self._detach(subscription)
        if subscription.task and subscription.task is not asyncio.current_task():
            subscription.task.cancel()
        self._clear_queue(subscription)
        subscription.close_task = asyncio.create_task(self._close(subscription, reason))

    async def _close(self, subscription: RoomSubscription, reason: str) -> None:
        try:
            if subscription.task and subscription.task is not asyncio.current_task():
                await asyncio.wait([subscription.task])
            await subscription.connection.close(code=DROPPED_CLOSE_CODE, reason=reason)
            logger.warning(
                f"Closed connection of user {subscription.user_id} "
                f"in room {subscription.room_id}: {reason}"
            )
        except Exception as e:
            # 이미 끊긴 연결은 닫기에 실패할 수 있음
            logger.warning(f"Failed to close dropped connection of user {subscription.user_id}: {e}")
        finally:
            subscription.dropped.set()

    @staticmethod
    def _clear_queue(subscription: RoomSubscription) -> None:
        """남은 이벤트를 비워 drained()가 끊긴 구독을 기다리지 않게 합니다."""
        while True:
            try:
                subscription.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            subscription.queue.task_done()

    async def drained(self, room_id: Optional[str] = None) -> None:
        """현재 큐에 쌓인 이벤트가 모두 전송될 때까지 대기"""
        if room_id is not None:
            subscriptions = list(self.room_subscriptions.get(room_id, []))
        else:
            subscriptions = [s for subs in self.room_subscriptions.values() for s in subs]
        for subscription in subscriptions:
            await subscription.queue.join()

    def get_room_users(self, room_id: str) -> List[str]:
        """채팅방에 연결된 사용자 목록을 반환합니다."""
        return [s.user_id for s in self.room_subscriptions.get(room_id, []) if s.user_id]

    def subscription_count(self, room_id: Optional[str] = None) -> int:
        if room_id is not None:
            return len(self.room_subscriptions.get(room_id, []))
        return sum(len(subs) for subs in self.room_subscriptions.values())
