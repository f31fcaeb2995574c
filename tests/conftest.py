import pytest
import pytest_asyncio
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport

from app.core.config import Settings
from app.domain.entities import Caller, ChatRoom
from app.infrastructure.kafka.config import kafka_config
from app.main import create_app
from app.services.catalog_service import InMemoryCatalog, ProductInfo, UserInfo
from app.services.chat_room_service import ChatRoomService
from app.services.room_store import InMemoryRoomStore
from app.services.sales_service import SalesRecorder
from app.websockets.connection_manager import RoomEventHub

from tests.helpers import (
    ADMIN_ID,
    BUYER_ID,
    OTHER_ADMIN_ID,
    PRODUCT_ID,
    PRODUCT_WITH_BASE_ID,
    SELLER_ID,
    STRANGER_ID,
    TEST_SECRET_KEY,
    RecordingPublisher,
)


@pytest.fixture
def test_settings() -> Settings:
    """인메모리 저장소 / 로그 이벤트 설정"""
    return Settings(
        storage_backend="memory",
        event_backend="log",
        secret_key=TEST_SECRET_KEY,
        metrics_enabled=False,
        log_level="WARNING"
    )


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        products=[
            ProductInfo(id=PRODUCT_ID, name="Deploy Bot", price=105.0, developer_id=SELLER_ID),
            ProductInfo(
                id=PRODUCT_WITH_BASE_ID, name="Lint Pack", price=120.0,
                base_price=100.0, developer_id=SELLER_ID
            ),
        ],
        users=[
            UserInfo(id=BUYER_ID, name="Bora", email="buyer@example.com"),
            UserInfo(id=SELLER_ID, name="Seojun", email="seller@example.com"),
            UserInfo(id=ADMIN_ID, name="Admin", email="admin@example.com"),
        ]
    )


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def store() -> InMemoryRoomStore:
    return InMemoryRoomStore()


@pytest.fixture
def hub() -> RoomEventHub:
    return RoomEventHub(queue_size=100)


@pytest.fixture
def chat_service(store, catalog, publisher, hub, test_settings) -> ChatRoomService:
    return ChatRoomService(
        store=store,
        catalog=catalog,
        publisher=publisher,
        sales_recorder=SalesRecorder(publisher, topic=kafka_config.topic_sales_events),
        hub=hub,
        settings=test_settings
    )


@pytest.fixture
def buyer() -> Caller:
    return Caller(user_id=BUYER_ID, role="buyer", name="Bora")


@pytest.fixture
def seller() -> Caller:
    return Caller(user_id=SELLER_ID, role="developer", name="Seojun")


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id=ADMIN_ID, role="admin", name="Admin")


@pytest.fixture
def other_admin() -> Caller:
    return Caller(user_id=OTHER_ADMIN_ID, role="admin")


@pytest.fixture
def stranger() -> Caller:
    return Caller(user_id=STRANGER_ID, role="buyer")


@pytest_asyncio.fixture
async def room(chat_service, buyer) -> ChatRoom:
    """구매자가 개설한 채팅방 (status=open, deal_status=pending)"""
    room, _ = await chat_service.open_room(buyer, PRODUCT_ID)
    return room


@pytest_asyncio.fixture
async def mediated_room(chat_service, room, buyer, admin) -> ChatRoom:
    """관리자가 참여한 채팅방"""
    await chat_service.request_admin(buyer, room.id)
    change = await chat_service.join_as_admin(admin, room.id)
    return change.room


@pytest.fixture
def app(test_settings, store, catalog, publisher):
    return create_app(test_settings, store=store, catalog=catalog, event_publisher=publisher)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
