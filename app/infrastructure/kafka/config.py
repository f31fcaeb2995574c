"""
Kafka Configuration

KAFKA_ 접두사 환경 변수로 덮어쓸 수 있습니다 (예: KAFKA_BOOTSTRAP_SERVERS, KAFKA_TOPIC_SALES_EVENTS).
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings


class KafkaConfig(BaseSettings):
    """Kafka 설정"""

    bootstrap_servers: List[str] = Field(default=["localhost:9092"], description="Kafka bootstrap servers")
    client_id: str = "deal-chat-service"

    # Producer
    producer_acks: str = Field(default="all", description="판매 기록 이벤트 유실 방지를 위해 all")
    producer_compression_type: str = Field(default="gzip", description="'none', 'gzip', 'lz4', 'zstd'")
    producer_request_timeout_ms: int = 30000
    producer_max_retries: int = Field(default=3, description="publish_with_retry 최대 시도 횟수")
    producer_retry_backoff_s: float = 0.5

    # Topics
    topic_chat_events: str = Field(default="chat.events", description="채팅방 개설/중재/거래 상태 변경")
    topic_message_events: str = Field(default="message.events", description="메시지 기록")
    topic_notification_events: str = Field(default="notification.events", description="관리자 호출 알림")
    topic_sales_events: str = Field(default="sales.events", description="거래 확정 판매 기록 (Sales/Orders)")

    class Config:
        env_prefix = "KAFKA_"
        case_sensitive = False


kafka_config = KafkaConfig()
