# app/modules/approvals/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from app.shared.schemas.common import BaseResponse


class ApprovalAction(BaseModel):
    """Aprobar/rechazar solicitud de descuento"""
    id: int = Field(..., gt=0, description="ID de la solicitud")
    action: str = Field(..., description="approved | rejected")
    comment: Optional[str] = Field(None, max_length=2000, description="Comentario del aprobador")

    @field_validator('action', mode='before')
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('comment', mode='before')
    @classmethod
    def strip_comment(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class LegacyActionBody(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class ApprovalActionResponse(BaseResponse):
    request_id: int
    status: str
    approver_id: int
    approver_role: str


class PendingRequestItem(BaseModel):
    """Fila de la bandeja de pendientes"""
    id: int
    agent_id: int
    agent_name: Optional[str] = None
    division_id: Optional[int] = None
    buyer_code: Optional[str] = None
    buyer_name: Optional[str] = None
    site_name: Optional[str] = None
    amount: Decimal
    invoice_ref: Optional[str] = None
    reason: Optional[str] = None
    required_role: str
    assigned_to_user_id: Optional[int] = None
    assigned_reason: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class HistoryItem(BaseModel):
    """Fila de historial: solicitud + decisión"""
    request_id: int
    agent_id: int
    agent_name: Optional[str] = None
    division_id: Optional[int] = None
    buyer_name: Optional[str] = None
    amount: Decimal
    required_role: str
    status: str
    approver_id: int
    approver_name: Optional[str] = None
    approver_role: str
    action: str
    comment: Optional[str] = None
    acted_at: datetime


class PendingListResponse(BaseResponse):
    items: List[PendingRequestItem]
    total: int


class HistoryListResponse(BaseResponse):
    items: List[HistoryItem]
    total: int
