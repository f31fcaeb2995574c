"""
Integration event publisher.

도메인 이벤트를 외부 협력 서비스(알림, Sales/Orders 등)로 내보내는 출구입니다.
운영 환경에서는 Kafka, 로컬/테스트 환경에서는 로그 출력 구현을 사용합니다.
"""

import logging
from typing import Optional

from app.core.errors import ExternalServiceException
from app.domain.events.base import DomainEvent
from app.infrastructure.kafka.producer import DomainEventProducer

logger = logging.getLogger(__name__)


class EventPublisher:
    """이벤트 발행 인터페이스"""

    async def publish(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> None:
        """반드시 전달되어야 하는 이벤트 발행 (실패 시 예외)"""
        raise NotImplementedError

    async def publish_best_effort(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> bool:
        """전달 실패를 로그로만 남기는 발행"""
        raise NotImplementedError

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class KafkaEventPublisher(EventPublisher):
    def __init__(self, producer: DomainEventProducer):
        self.producer = producer

    async def start(self) -> None:
        await self.producer.start()

    async def stop(self) -> None:
        await self.producer.stop()

    async def publish(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> None:
        if not await self.producer.publish_with_retry(topic, event, key):
            raise ExternalServiceException("kafka", f"Failed to publish {type(event).__name__} to {topic}")

    async def publish_best_effort(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> bool:
        delivered = await self.producer.publish_with_retry(topic, event, key)
        if not delivered:
            logger.warning(f"Dropped {type(event).__name__} for topic {topic} (key={key})")
        return delivered


class LoggingEventPublisher(EventPublisher):
    """브로커 없이 이벤트를 로그로만 남기는 구현 (event_backend=log)"""

    async def publish(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> None:
        logger.info(
            f"[Event] {topic} {type(event).__name__}",
            extra={"event_type": "domain_event", "topic": topic, "key": key, "payload": event.to_dict()}
        )

    async def publish_best_effort(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> bool:
        await self.publish(topic, event, key)
        return True
