from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from aiokafka.errors import KafkaConnectionError, KafkaTimeoutError

from app.domain.events import AdminJoined
from app.infrastructure.kafka import DomainEventProducer, KafkaConfig


@pytest.fixture
def event() -> AdminJoined:
    return AdminJoined(room_id="room-1", admin_id="admin-1", timestamp=datetime(2024, 1, 1, 12, 0))


@pytest.fixture
def producer() -> DomainEventProducer:
    return DomainEventProducer(KafkaConfig(producer_max_retries=3, producer_retry_backoff_s=0))


class TestDomainEventProducer:
    """Kafka Producer 발행 / 재시도 테스트"""

    def test_event_serialization(self, event):
        data = event.to_dict()

        assert data["__event_type__"] == "AdminJoined"
        assert data["timestamp"] == "2024-01-01T12:00:00"
        assert data["room_id"] == "room-1"

    @pytest.mark.asyncio
    async def test_publish_before_start_fails(self, producer, event):
        assert not producer.started
        with pytest.raises(RuntimeError):
            await producer.publish("chat.events", event, key="room-1")

        assert await producer.publish_with_retry("chat.events", event, key="room-1") is False

    @pytest.mark.asyncio
    async def test_publish_sends_event_dict_with_key(self, producer, event):
        producer.producer = AsyncMock()

        await producer.publish("chat.events", event, key="room-1")

        producer.producer.send_and_wait.assert_awaited_once_with(
            topic="chat.events", value=event.to_dict(), key="room-1"
        )

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, producer, event):
        producer.publish = AsyncMock(side_effect=[KafkaTimeoutError(), None])

        assert await producer.publish_with_retry("chat.events", event, key="room-1") is True
        assert producer.publish.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, producer, event):
        producer.publish = AsyncMock(side_effect=KafkaTimeoutError())

        assert await producer.publish_with_retry("chat.events", event) is False
        assert producer.publish.await_count == 3

    @pytest.mark.asyncio
    async def test_other_kafka_errors_fail_fast(self, producer, event):
        producer.publish = AsyncMock(side_effect=KafkaConnectionError())

        assert await producer.publish_with_retry("chat.events", event) is False
        assert producer.publish.await_count == 1
