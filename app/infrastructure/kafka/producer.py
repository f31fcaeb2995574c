"""
Kafka Producer

Domain Event를 Kafka로 발행합니다. 같은 채팅방의 이벤트는 room_id를 key로 보내
같은 파티션에 순서대로 쌓이도록 합니다.
"""

import asyncio
import json
import logging
from typing import Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError, KafkaTimeoutError

from app.domain.events.base import DomainEvent
from .config import KafkaConfig, kafka_config as default_kafka_config

logger = logging.getLogger(__name__)


def _serialize(value: dict) -> bytes:
    return json.dumps(value, default=str).encode('utf-8')


class DomainEventProducer:
    """Domain Event 발행용 AIOKafkaProducer 래퍼"""

    def __init__(self, config: Optional[KafkaConfig] = None):
        self.config = config or default_kafka_config
        self.producer: Optional[AIOKafkaProducer] = None

    @property
    def started(self) -> bool:
        return self.producer is not None

    async def start(self):
        if self.started:
            logger.warning("Producer already started")
            return

        producer = AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            client_id=self.config.client_id,
            value_serializer=_serialize,
            key_serializer=lambda k: k.encode('utf-8') if k else None,
            acks=self.config.producer_acks,
            compression_type=self.config.producer_compression_type,
            request_timeout_ms=self.config.producer_request_timeout_ms
        )
        try:
            await producer.start()
        except KafkaError as e:
            logger.error(f"Failed to start Kafka Producer: {e}")
            await producer.stop()
            raise

        self.producer = producer
        logger.info(f"Kafka Producer started ({', '.join(self.config.bootstrap_servers)})")

    async def stop(self):
        if self.producer:
            await self.producer.stop()
            self.producer = None
            logger.info("Kafka Producer stopped")

    async def publish(self, topic: str, event: DomainEvent, key: Optional[str] = None):
        """
        Domain Event 1건 발행 (브로커 확인까지 대기)

        Raises:
            RuntimeError: start() 이전 호출
            KafkaError: 브로커 전송 실패
        """
        if not self.producer:
            raise RuntimeError("Producer not started. Call start() first.")

        event_data = event.to_dict()
        metadata = await self.producer.send_and_wait(topic=topic, value=event_data, key=key)
        logger.info(
            f"[Event Published] {event_data['__event_type__']} -> "
            f"{topic}[{metadata.partition}]@{metadata.offset}"
        )

    async def publish_with_retry(
        self,
        topic: str,
        event: DomainEvent,
        key: Optional[str] = None,
        max_retries: Optional[int] = None
    ) -> bool:
        """
        타임아웃은 재시도, 그 외 Kafka 오류는 즉시 실패 처리

        Returns:
            bool: 발행 성공 여부
        """
        attempts = max_retries or self.config.producer_max_retries
        for attempt in range(1, attempts + 1):
            try:
                await self.publish(topic, event, key)
                return True
            except KafkaTimeoutError:
                if attempt == attempts:
                    break
                logger.warning(f"Retry {attempt}/{attempts} for topic: {topic}")
                await asyncio.sleep(self.config.producer_retry_backoff_s * attempt)
            except (KafkaError, RuntimeError) as e:
                logger.error(f"Unrecoverable error publishing to {topic}: {e}")
                return False

        logger.error(f"Failed after {attempts} attempts: {topic}")
        return False
