import asyncio

import pytest

from app.core.errors import (
    ExternalServiceException,
    InvalidStateException,
    ResourceNotFoundException,
    UnauthorizedActionException,
)
from app.domain.entities import DealStatus, MessageKind, RoomAction, RoomStatus
from app.domain.events import DealCompleted, DealMarkedDone
from app.infrastructure.kafka.config import kafka_config
from app.services.chat_room_service import RoomChange

from tests.helpers import MISSING_ID, PRODUCT_WITH_BASE_ID


class TestDealConfirmation:
    """판매자 완료 표시 -> 구매자 확정 프로토콜 테스트"""

    @pytest.mark.asyncio
    async def test_seller_marks_and_buyer_confirms(self, chat_service, room, buyer, seller, publisher):
        """판매자 표시 후 구매자 확정 시 판매 기록이 정확히 한 번 요청됨"""
        marked = await chat_service.mark_deal_done(seller, room.id)
        assert marked.room.deal_status == DealStatus.SELLER_MARKED

        confirmed = await chat_service.confirm_deal(buyer, room.id)
        assert confirmed.room.deal_status == DealStatus.COMPLETED
        assert confirmed.room.status == RoomStatus.OPEN

        sales = publisher.events_of(DealCompleted)
        assert len(sales) == 1
        sale = sales[0]
        assert sale.product_id == room.product_id
        assert sale.buyer_id == room.buyer_id
        assert sale.seller_id == room.seller_id
        assert sale.price == 105.0
        assert sale.platform_commission == 5.0
        assert sale.seller_earnings == 100.0
        assert publisher.topics_of(DealCompleted) == [kafka_config.topic_sales_events]

    @pytest.mark.asyncio
    async def test_sale_split_uses_base_price(self, chat_service, buyer, seller, publisher):
        """상품에 base_price가 있으면 차액이 플랫폼 수수료"""
        room, _ = await chat_service.open_room(buyer, PRODUCT_WITH_BASE_ID)
        await chat_service.mark_deal_done(seller, room.id)
        await chat_service.confirm_deal(buyer, room.id)

        sale = publisher.events_of(DealCompleted)[0]
        assert sale.price == 120.0
        assert sale.platform_commission == 20.0
        assert sale.seller_earnings == 100.0

    @pytest.mark.asyncio
    async def test_buyer_cannot_mark_deal(self, chat_service, room, buyer):
        """구매자의 완료 표시는 Unauthorized, 거래 상태 유지"""
        with pytest.raises(UnauthorizedActionException):
            await chat_service.mark_deal_done(buyer, room.id)

        current = await chat_service.get_room(buyer, room.id)
        assert current.deal_status == DealStatus.PENDING

    @pytest.mark.asyncio
    async def test_confirm_while_pending_fails(self, chat_service, room, buyer, publisher):
        with pytest.raises(InvalidStateException):
            await chat_service.confirm_deal(buyer, room.id)

        assert publisher.events_of(DealCompleted) == []

    @pytest.mark.asyncio
    async def test_seller_cannot_confirm(self, chat_service, room, seller):
        await chat_service.mark_deal_done(seller, room.id)

        with pytest.raises(UnauthorizedActionException):
            await chat_service.confirm_deal(seller, room.id)

    @pytest.mark.asyncio
    async def test_completed_deal_cannot_be_confirmed_again(self, chat_service, room, buyer, seller, publisher):
        await chat_service.mark_deal_done(seller, room.id)
        await chat_service.confirm_deal(buyer, room.id)

        with pytest.raises(InvalidStateException):
            await chat_service.confirm_deal(buyer, room.id)
        with pytest.raises(InvalidStateException):
            await chat_service.mark_deal_done(seller, room.id)

        assert len(publisher.events_of(DealCompleted)) == 1

    @pytest.mark.asyncio
    async def test_unknown_room(self, chat_service, seller):
        with pytest.raises(ResourceNotFoundException):
            await chat_service.mark_deal_done(seller, MISSING_ID)

    @pytest.mark.asyncio
    async def test_lifecycle_writes_system_messages(self, chat_service, room, buyer, seller, publisher):
        """완료 표시/확정마다 시스템 메시지가 기록됨"""
        await chat_service.mark_deal_done(seller, room.id)
        await chat_service.confirm_deal(buyer, room.id)

        messages = await chat_service.list_messages(buyer, room.id)
        assert [m.kind for m in messages] == [MessageKind.SYSTEM, MessageKind.SYSTEM]
        assert [m.sender_id for m in messages] == [seller.user_id, buyer.user_id]
        assert len(publisher.events_of(DealMarkedDone)) == 1


class TestConcurrentDealActions:
    """같은 채팅방에 대한 동시 요청 직렬화 테스트"""

    @pytest.mark.asyncio
    async def test_concurrent_mark_exactly_one_succeeds(self, chat_service, room, seller):
        results = await asyncio.gather(
            chat_service.mark_deal_done(seller, room.id),
            chat_service.mark_deal_done(seller, room.id),
            return_exceptions=True
        )

        successes = [r for r in results if isinstance(r, RoomChange)]
        failures = [r for r in results if isinstance(r, InvalidStateException)]
        assert len(successes) == 1
        assert len(failures) == 1

    @pytest.mark.asyncio
    async def test_concurrent_confirm_records_one_sale(self, chat_service, room, buyer, seller, publisher):
        await chat_service.mark_deal_done(seller, room.id)

        results = await asyncio.gather(
            *[chat_service.confirm_deal(buyer, room.id) for _ in range(5)],
            return_exceptions=True
        )

        assert sum(isinstance(r, RoomChange) for r in results) == 1
        assert sum(isinstance(r, InvalidStateException) for r in results) == 4
        assert len(publisher.events_of(DealCompleted)) == 1


class TestSaleRecordingFailure:
    """판매 기록 실패 시 거래 상태 유지 테스트"""

    @pytest.mark.asyncio
    async def test_failed_sale_keeps_deal_state(self, chat_service, room, buyer, seller, publisher):
        await chat_service.mark_deal_done(seller, room.id)
        publisher.fail_topics.add(kafka_config.topic_sales_events)

        with pytest.raises(ExternalServiceException):
            await chat_service.confirm_deal(buyer, room.id)

        current = await chat_service.get_room(buyer, room.id)
        assert current.deal_status == DealStatus.SELLER_MARKED
        messages = await chat_service.list_messages(buyer, room.id)
        assert len(messages) == 1  # 완료 표시 메시지만 존재

        # 판매 기록이 복구되면 다시 확정 가능
        publisher.fail_topics.clear()
        change = await chat_service.confirm_deal(buyer, room.id)
        assert change.room.deal_status == DealStatus.COMPLETED
        assert len(publisher.events_of(DealCompleted)) == 1

    @pytest.mark.asyncio
    async def test_room_is_not_completed_while_sale_is_pending(
        self, chat_service, room, buyer, seller, publisher
    ):
        """판매 기록 요청 중에도, 실패한 뒤에도 조회 결과는 seller_marked"""
        await chat_service.mark_deal_done(seller, room.id)

        sale_started = asyncio.Event()
        release_sale = asyncio.Event()
        record = publisher.publish

        async def slow_failing_publish(topic, event, key=None):
            if topic == kafka_config.topic_sales_events:
                sale_started.set()
                await release_sale.wait()
                raise ExternalServiceException("kafka", "sales topic unavailable")
            await record(topic, event, key)

        publisher.publish = slow_failing_publish

        confirm = asyncio.create_task(chat_service.confirm_deal(buyer, room.id))
        await asyncio.wait_for(sale_started.wait(), timeout=1)

        observed = [(await chat_service.get_room(seller, room.id)).deal_status]
        release_sale.set()
        with pytest.raises(ExternalServiceException):
            await confirm
        observed.append((await chat_service.get_room(seller, room.id)).deal_status)

        assert observed == [DealStatus.SELLER_MARKED, DealStatus.SELLER_MARKED]
        actions = await chat_service.allowed_actions_for(buyer, room.id)
        assert RoomAction.CONFIRM_DEAL in actions

    @pytest.mark.asyncio
    async def test_best_effort_events_do_not_fail_actions(self, chat_service, room, seller, publisher):
        """알림성 이벤트 발행 실패는 상태 변경을 막지 않음"""
        publisher.fail_topics.add(kafka_config.topic_chat_events)
        publisher.fail_topics.add(kafka_config.topic_message_events)

        change = await chat_service.mark_deal_done(seller, room.id)

        assert change.room.deal_status == DealStatus.SELLER_MARKED
        assert publisher.events_of(DealMarkedDone) == []
