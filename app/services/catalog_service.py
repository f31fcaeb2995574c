"""
Product / User / Order lookups.

상품, 사용자, 주문 데이터는 다른 서비스가 소유합니다.
이 서비스는 채팅방 개설과 화면 표시용으로 읽기 전용 조회만 수행합니다.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ProductInfo(BaseModel):
    id: str
    name: str
    price: float
    base_price: Optional[float] = None
    developer_id: str
    status: str = "approved"


class UserInfo(BaseModel):
    id: str
    name: str
    email: Optional[str] = None


class Catalog:
    """읽기 전용 조회 인터페이스"""

    async def get_product(self, product_id: str) -> Optional[ProductInfo]:
        raise NotImplementedError

    async def has_completed_order(self, product_id: str, buyer_id: str) -> bool:
        raise NotImplementedError

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserInfo]:
        raise NotImplementedError


class InMemoryCatalog(Catalog):
    """로컬 실행과 테스트용 조회 구현"""

    def __init__(
        self,
        products: Iterable[ProductInfo] = (),
        users: Iterable[UserInfo] = (),
        completed_orders: Iterable[Tuple[str, str]] = ()
    ):
        self.products: Dict[str, ProductInfo] = {p.id: p for p in products}
        self.users: Dict[str, UserInfo] = {u.id: u for u in users}
        self.completed_orders = set(completed_orders)

    def add_completed_order(self, product_id: str, buyer_id: str) -> None:
        self.completed_orders.add((product_id, buyer_id))

    async def get_product(self, product_id: str) -> Optional[ProductInfo]:
        return self.products.get(product_id)

    async def has_completed_order(self, product_id: str, buyer_id: str) -> bool:
        return (product_id, buyer_id) in self.completed_orders

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserInfo]:
        return {uid: self.users[uid] for uid in user_ids if uid in self.users}


def _as_object_id(value: str):
    """ObjectId 형식이면 변환, 아니면 문자열 그대로 조회"""
    return ObjectId(value) if ObjectId.is_valid(value) else value


class MongoCatalog(Catalog):
    """
    마켓플레이스 MongoDB의 products / users / orders 컬렉션 조회.

    컬렉션 스키마는 마켓플레이스 백엔드가 소유하므로 필요한 필드만 읽습니다.
    """

    def __init__(self, database_getter: Callable[[], AsyncIOMotorDatabase]):
        self._database_getter = database_getter

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._database_getter()

    async def get_product(self, product_id: str) -> Optional[ProductInfo]:
        doc = await self.db.products.find_one(
            {"_id": _as_object_id(product_id)},
            {"name": 1, "price": 1, "basePrice": 1, "developer": 1, "status": 1}
        )
        if not doc:
            return None
        return ProductInfo(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            price=float(doc.get("price", 0)),
            base_price=doc.get("basePrice"),
            developer_id=str(doc["developer"]),
            status=doc.get("status", "approved")
        )

    async def has_completed_order(self, product_id: str, buyer_id: str) -> bool:
        order = await self.db.orders.find_one(
            {
                "product": _as_object_id(product_id),
                "buyer": _as_object_id(buyer_id),
                "status": "completed"
            },
            {"_id": 1}
        )
        return order is not None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserInfo]:
        ids: List = [_as_object_id(uid) for uid in set(user_ids)]
        if not ids:
            return {}

        users = {}
        cursor = self.db.users.find({"_id": {"$in": ids}}, {"name": 1, "email": 1})
        async for doc in cursor:
            user_id = str(doc["_id"])
            users[user_id] = UserInfo(id=user_id, name=doc.get("name", ""), email=doc.get("email"))
        return users
