"""
Deal Chat Service - FastAPI Application

상품 문의 채팅방, 관리자 중재, 판매자/구매자 거래 확정을 담당하는 서비스
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import include_routers
import app.api as api_package
from app.core.config import Settings, settings as default_settings
from app.core.logging import setup_logging
from app.database import close_databases, get_database, init_databases
from app.infrastructure.kafka import DomainEventProducer, kafka_config
from app.middleware.error_handler import (
    ErrorHandlerMiddleware,
    create_http_exception_handler,
    create_validation_exception_handler,
)
from app.middleware.logging_middleware import LoggingMiddleware
from app.services.catalog_service import Catalog, InMemoryCatalog, MongoCatalog
from app.services.chat_room_service import ChatRoomService
from app.services.event_publisher import EventPublisher, KafkaEventPublisher, LoggingEventPublisher
from app.services.room_locks import RoomLockRegistry
from app.services.room_store import InMemoryRoomStore, MongoRoomStore, RoomStore
from app.services.sales_service import SalesRecorder
from app.websockets.connection_manager import RoomEventHub

logger = logging.getLogger(__name__)


def _default_store(settings: Settings) -> RoomStore:
    if settings.storage_backend == "mongodb":
        return MongoRoomStore()
    return InMemoryRoomStore()


def _default_catalog(settings: Settings) -> Catalog:
    if settings.storage_backend == "mongodb":
        return MongoCatalog(get_database)
    return InMemoryCatalog()


def _default_publisher(settings: Settings) -> EventPublisher:
    if settings.event_backend == "kafka":
        return KafkaEventPublisher(DomainEventProducer(kafka_config))
    return LoggingEventPublisher()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[RoomStore] = None,
    catalog: Optional[Catalog] = None,
    event_publisher: Optional[EventPublisher] = None
) -> FastAPI:
    """
    애플리케이션 생성.

    협력 객체(저장소, 상품 조회, 이벤트 발행)는 인자로 주입할 수 있으며
    생략하면 설정의 backend 값에 맞는 구현을 사용합니다.
    """
    settings = settings or default_settings
    setup_logging(settings)

    publisher = event_publisher or _default_publisher(settings)
    hub = RoomEventHub(queue_size=settings.ws_send_queue_size)
    chat_service = ChatRoomService(
        store=store or _default_store(settings),
        catalog=catalog or _default_catalog(settings),
        publisher=publisher,
        sales_recorder=SalesRecorder(
            publisher,
            topic=kafka_config.topic_sales_events,
            commission_rate=settings.platform_commission_rate
        ),
        hub=hub,
        locks=RoomLockRegistry(),
        settings=settings,
        topics=kafka_config
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management"""
        # Startup
        logger.info(f"{settings.app_name} starting up...")
        await init_databases(settings)
        await publisher.start()

        yield

        # Shutdown
        logger.info(f"{settings.app_name} shutting down...")
        await publisher.stop()
        await close_databases()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.event_publisher = publisher
    app.state.event_hub = hub
    app.state.chat_service = chat_service

    # Exception handlers
    app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())
    app.add_exception_handler(RequestValidationError, create_validation_exception_handler())

    # Middleware (마지막에 추가한 것이 가장 바깥)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    include_routers(app, "api", api_package.__path__)

    # Prometheus metrics
    if settings.metrics_enabled:
        Instrumentator().instrument(app).expose(app)

    @app.get("/")
    async def root():
        return {
            "service": settings.app_name,
            "version": settings.version,
            "status": "running"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug
    )
