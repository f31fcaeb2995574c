import asyncio

import pytest

from app.websockets.connection_manager import DROPPED_CLOSE_CODE, RoomEventHub

from tests.helpers import FakeConnection


class BlockingConnection(FakeConnection):
    """release 될 때까지 전송이 멈춰 있는 연결"""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def send_json(self, data):
        await self.release.wait()
        await super().send_json(data)


class TestRoomEventHub:
    """채팅방 이벤트 전달 테스트"""

    @pytest.mark.asyncio
    async def test_publish_preserves_order(self):
        hub = RoomEventHub()
        first, second = FakeConnection(), FakeConnection()
        await hub.subscribe("room-1", first, "u1")
        await hub.subscribe("room-1", second, "u2")

        for i in range(50):
            hub.publish("room-1", {"type": "message", "seq": i})
        await hub.drained("room-1")

        expected = list(range(50))
        assert [f["seq"] for f in first.sent] == expected
        assert [f["seq"] for f in second.sent] == expected

    @pytest.mark.asyncio
    async def test_rooms_are_isolated(self):
        hub = RoomEventHub()
        in_room, elsewhere = FakeConnection(), FakeConnection()
        await hub.subscribe("room-1", in_room)
        await hub.subscribe("room-2", elsewhere)

        delivered = hub.publish("room-1", {"type": "message"})
        await hub.drained()

        assert delivered == 1
        assert len(in_room.sent) == 1
        assert elsewhere.sent == []

    @pytest.mark.asyncio
    async def test_exclude_skips_sender(self):
        hub = RoomEventHub()
        sender_conn, other_conn = FakeConnection(), FakeConnection()
        sender = await hub.subscribe("room-1", sender_conn, "u1")
        await hub.subscribe("room-1", other_conn, "u2")

        hub.publish("room-1", {"type": "typing"}, exclude=sender)
        await hub.drained("room-1")

        assert sender_conn.sent == []
        assert other_conn.types() == ["typing"]

    @pytest.mark.asyncio
    async def test_failed_send_drops_subscription(self):
        hub = RoomEventHub()
        healthy, broken = FakeConnection(), FakeConnection(fail=True)
        await hub.subscribe("room-1", healthy, "u1")
        broken_sub = await hub.subscribe("room-1", broken, "u2")

        hub.publish("room-1", {"type": "message"})
        await hub.drained("room-1")

        assert not broken_sub.active
        assert hub.subscription_count("room-1") == 1
        assert hub.get_room_users("room-1") == ["u1"]

        await asyncio.wait_for(broken_sub.dropped.wait(), timeout=1)
        assert broken.close_code == DROPPED_CLOSE_CODE
        assert healthy.close_code is None

    @pytest.mark.asyncio
    async def test_full_outbox_drops_slow_subscriber(self):
        hub = RoomEventHub(queue_size=2)
        slow = BlockingConnection()
        subscription = await hub.subscribe("room-1", slow, "slow")

        delivered = [hub.publish("room-1", {"type": "message", "seq": i}) for i in range(3)]

        assert delivered == [1, 1, 0]
        assert not subscription.active
        assert hub.subscription_count() == 0
        await asyncio.wait_for(subscription.dropped.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_publish_does_not_wait_for_delivery(self):
        hub = RoomEventHub()
        slow = BlockingConnection()
        await hub.subscribe("room-1", slow)

        hub.publish("room-1", {"type": "message"})
        assert slow.sent == []

        slow.release.set()
        await hub.drained("room-1")
        assert slow.types() == ["message"]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        hub = RoomEventHub()
        connection = FakeConnection()
        subscription = await hub.subscribe("room-1", connection, "u1")

        await hub.unsubscribe(subscription)
        delivered = hub.publish("room-1", {"type": "message"})

        assert delivered == 0
        assert subscription.task.done()
        assert hub.room_subscriptions == {}

    @pytest.mark.asyncio
    async def test_dropped_slow_subscriber_is_closed(self):
        """송신 큐가 넘쳐 끊긴 연결은 닫혀서 클라이언트가 재연결하도록 함"""
        hub = RoomEventHub(queue_size=1)
        slow = BlockingConnection()
        subscription = await hub.subscribe("room-1", slow, "slow")

        for i in range(5):
            hub.publish("room-1", {"type": "message", "seq": i})

        await asyncio.wait_for(subscription.dropped.wait(), timeout=1)
        assert hub.subscription_count() == 0
        assert not subscription.active
        assert slow.close_code == DROPPED_CLOSE_CODE
        assert subscription.task.done()

        # 끊긴 뒤의 해제 호출은 아무 일도 하지 않음
        await hub.unsubscribe(subscription)
        assert hub.room_subscriptions == {}

    @pytest.mark.asyncio
    async def test_unsubscribe_does_not_close_connection(self):
        hub = RoomEventHub()
        connection = FakeConnection()
        subscription = await hub.subscribe("room-1", connection, "u1")

        await hub.unsubscribe(subscription)

        assert connection.close_code is None
        assert not subscription.dropped.is_set()
