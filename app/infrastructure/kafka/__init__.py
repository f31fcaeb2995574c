"""
Kafka Infrastructure

Producer, Config 등 Kafka 관련 인프라 코드
"""

from .producer import DomainEventProducer
from .config import KafkaConfig, kafka_config

__all__ = [
    'DomainEventProducer',
    'KafkaConfig',
    'kafka_config',
]
