"""
Sales recording.

구매자가 거래를 확정하면 Sales/Orders 서비스에 판매 기록을 요청합니다.
지갑 잔액, 거래 내역 등 후속 장부 처리는 Sales/Orders 서비스의 책임입니다.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.domain.entities import ChatRoom
from app.domain.events import DealCompleted
from app.services.catalog_service import ProductInfo
from app.services.event_publisher import EventPublisher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleSplit:
    price: float
    platform_commission: float
    seller_earnings: float


def compute_sale_split(
    price: float,
    base_price: Optional[float] = None,
    commission_rate: float = 0.05
) -> SaleSplit:
    """
    판매 금액을 플랫폼 수수료와 판매자 수익으로 분리합니다.

    상품에 base_price가 있으면 표시 가격과의 차액이 수수료이고,
    없으면 표시 가격에 수수료율이 포함된 것으로 보고 역산합니다.
    """
    if base_price:
        return SaleSplit(
            price=price,
            platform_commission=round(price - base_price, 2),
            seller_earnings=base_price
        )

    base = round(price / (1 + commission_rate), 2)
    return SaleSplit(
        price=price,
        platform_commission=round(price - base, 2),
        seller_earnings=base
    )


class SalesRecorder:
    """DealCompleted 이벤트로 판매 기록을 요청하는 Sales/Orders 협력자"""

    def __init__(self, publisher: EventPublisher, topic: str, commission_rate: float = 0.05):
        self.publisher = publisher
        self.topic = topic
        self.commission_rate = commission_rate

    async def record_sale(self, room: ChatRoom, product: ProductInfo) -> DealCompleted:
        split = compute_sale_split(product.price, product.base_price, self.commission_rate)
        event = DealCompleted(
            room_id=room.id,
            product_id=room.product_id,
            buyer_id=room.buyer_id,
            seller_id=room.seller_id,
            price=split.price,
            platform_commission=split.platform_commission,
            seller_earnings=split.seller_earnings,
            timestamp=datetime.utcnow()
        )
        await self.publisher.publish(self.topic, event, key=room.id)
        logger.info(
            f"Sale recorded for room {room.id}: {split.price} "
            f"(commission {split.platform_commission}, seller {split.seller_earnings})"
        )
        return event
