from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from app.domain.entities import MessageKind, ParticipantRole


class MessageCreate(BaseModel):
    """메시지 생성 스키마"""
    content: str = Field(..., min_length=1, description="메시지 내용")


class MessageResponse(BaseModel):
    """메시지 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="메시지 ID")
    room_id: str = Field(..., description="채팅방 ID")
    seq: int = Field(..., description="채팅방 내 순번")
    sender_id: str = Field(..., description="메시지 발송자 ID")
    sender_role: ParticipantRole = Field(..., description="발송 시점의 역할: buyer, seller, admin")
    kind: MessageKind = Field(..., description="메시지 타입: text, system")
    content: str = Field(..., description="메시지 내용")
    created_at: datetime = Field(..., description="생성일시")


class MessageList(BaseModel):
    """메시지 목록 스키마"""
    messages: List[MessageResponse] = Field(..., description="메시지 목록 (오래된 순)")
    total: int = Field(..., description="전체 메시지 수")
