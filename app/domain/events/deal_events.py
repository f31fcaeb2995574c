"""
Deal Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from .base import DomainEvent


@dataclass
class DealMarkedDone(DomainEvent):
    """판매자가 거래 완료 표시"""
    room_id: str
    product_id: str
    seller_id: str
    timestamp: datetime


@dataclass
class DealCompleted(DomainEvent):
    """구매자 확정 -> 판매 기록 요청 (Sales/Orders 서비스가 소비)"""
    room_id: str
    product_id: str
    buyer_id: str
    seller_id: str
    price: float
    platform_commission: float
    seller_earnings: float
    timestamp: datetime
