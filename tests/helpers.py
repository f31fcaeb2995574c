"""
테스트 공용 상수와 협력 객체 대역
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from jose import jwt

from app.core.errors import ExternalServiceException
from app.domain.events.base import DomainEvent
from app.services.event_publisher import EventPublisher


TEST_SECRET_KEY = "test-secret-key"

BUYER_ID = "64b000000000000000000001"
SELLER_ID = "64b000000000000000000002"
ADMIN_ID = "64b000000000000000000003"
OTHER_ADMIN_ID = "64b000000000000000000004"
STRANGER_ID = "64b000000000000000000005"

PRODUCT_ID = "64a000000000000000000001"  # base_price 없음 (수수료 포함 가격)
PRODUCT_WITH_BASE_ID = "64a000000000000000000002"  # base_price 있음
MISSING_ID = "64c000000000000000000000"


class RecordingPublisher(EventPublisher):
    """발행된 이벤트를 기록하는 테스트용 발행기"""

    def __init__(self):
        self.events: List[Tuple[str, DomainEvent, Optional[str]]] = []
        self.fail_topics = set()

    async def publish(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> None:
        if topic in self.fail_topics:
            raise ExternalServiceException("kafka", f"Failed to publish {type(event).__name__} to {topic}")
        self.events.append((topic, event, key))

    async def publish_best_effort(self, topic: str, event: DomainEvent, key: Optional[str] = None) -> bool:
        try:
            await self.publish(topic, event, key)
            return True
        except ExternalServiceException:
            return False

    def events_of(self, event_type) -> List[DomainEvent]:
        return [event for _, event, _ in self.events if isinstance(event, event_type)]

    def topics_of(self, event_type) -> List[str]:
        return [topic for topic, event, _ in self.events if isinstance(event, event_type)]


class FakeConnection:
    """send_json 호출을 기록하는 실시간 연결"""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail
        self.close_code: Optional[int] = None

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("connection lost")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.close_code = code

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.sent]


def make_token(user_id: str, role: str = "buyer", name: Optional[str] = None, secret: str = TEST_SECRET_KEY) -> str:
    """Identity 서비스가 발급하는 것과 같은 형식의 액세스 토큰"""
    payload = {"sub": user_id, "role": role, "exp": datetime.utcnow() + timedelta(hours=1)}
    if name:
        payload["name"] = name
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str, role: str = "buyer") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}
