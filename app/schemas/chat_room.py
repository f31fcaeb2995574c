from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.entities import DealStatus, RoomAction, RoomStatus
from .message import MessageResponse


class ChatRoomCreate(BaseModel):
    """채팅방 개설 스키마 (상품 문의)"""
    product_id: str = Field(..., description="문의할 상품 ID")


class ChatRoomResponse(BaseModel):
    """채팅방 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="채팅방 ID")
    product_id: str = Field(..., description="상품 ID")
    buyer_id: str = Field(..., description="구매자 ID")
    seller_id: str = Field(..., description="판매자 ID")
    admin_id: Optional[str] = Field(None, description="중재 관리자 ID")
    admin_requested: bool = Field(..., description="관리자 호출 여부")
    status: RoomStatus = Field(..., description="채팅방 상태: open, resolved")
    deal_status: DealStatus = Field(..., description="거래 상태: pending, seller_marked, completed")
    is_purchased: bool = Field(..., description="채팅방 개설 시점의 구매 여부")
    last_message: str = Field(..., description="마지막 메시지 미리보기")
    last_message_at: datetime = Field(..., description="마지막 메시지 일시")
    created_at: datetime = Field(..., description="생성일시")
    updated_at: datetime = Field(..., description="수정일시")


class ChatRoomOpenResponse(BaseModel):
    """채팅방 개설 결과"""
    room: ChatRoomResponse
    is_new: bool = Field(..., description="새로 생성되었는지 여부")


class ProductSummary(BaseModel):
    id: str
    name: str
    price: float


class ParticipantSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class ChatRoomDetail(BaseModel):
    """상품/참여자 정보, 메시지, 허용 동작이 포함된 채팅방 스키마"""
    room: ChatRoomResponse
    product: Optional[ProductSummary] = Field(None, description="상품 정보 (삭제된 경우 null)")
    buyer: ParticipantSummary
    seller: ParticipantSummary
    admin: Optional[ParticipantSummary] = None
    messages: List[MessageResponse] = Field(default_factory=list, description="메시지 목록 (오래된 순)")
    allowed_actions: List[RoomAction] = Field(default_factory=list, description="호출자가 수행 가능한 동작")


class ChatRoomList(BaseModel):
    """채팅방 목록 스키마"""
    rooms: List[ChatRoomResponse] = Field(..., description="채팅방 목록 (최근 메시지 순)")
    total: int = Field(..., description="전체 채팅방 수")


class AllowedActionsResponse(BaseModel):
    room_id: str
    allowed_actions: List[RoomAction]


class RoomActionResponse(BaseModel):
    """채팅방 상태 변경 결과"""
    room: ChatRoomResponse
    message: Optional[MessageResponse] = Field(None, description="기록된 시스템 메시지")
    detail: str = Field(..., description="처리 결과 안내")
