# app/modules/discounts/schemas.py
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, Any, List
from decimal import Decimal
from datetime import datetime
from app.shared.schemas.common import BaseResponse

IDEMPOTENCY_KEY_MIN = 8
IDEMPOTENCY_KEY_MAX = 128


class RequestLineCreate(BaseModel):
    """Línea de artículo enviada por el agente"""
    article_id: int = Field(..., gt=0, description="ID del artículo")
    quantity: int = Field(1, gt=0, description="Cantidad (entero positivo)")
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100, description="Descuento % (0-100)")
    line_amount: Optional[Decimal] = Field(None, ge=0, description="Monto de la línea ya calculado por el cliente")


class DiscountRequestCreate(BaseModel):
    buyer_id: int = Field(..., gt=0, description="ID del comprador")
    site_id: Optional[int] = Field(None, description="ID del objeto del comprador")
    items: List[RequestLineCreate] = Field(default_factory=list)

    # Formato antiguo: un solo monto sin líneas
    amount: Optional[Decimal] = Field(None, ge=0, description="Monto total (sin líneas)")
    article_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(1, gt=0)

    invoice_ref: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = Field(None, max_length=2000)
    idempotency_key: Optional[str] = Field(
        None, min_length=IDEMPOTENCY_KEY_MIN, max_length=IDEMPOTENCY_KEY_MAX
    )

    @field_validator('site_id')
    @classmethod
    def clean_site_id(cls, v):
        # IDs no positivos se tratan como ausentes
        if v is None or v <= 0:
            return None
        return v

    @field_validator('invoice_ref', 'reason', 'idempotency_key', mode='before')
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @model_validator(mode='after')
    def require_lines_or_amount(self):
        if not self.items and self.amount is None:
            raise ValueError('Se requiere al menos una línea o un monto')
        return self

    @property
    def has_lines(self) -> bool:
        return bool(self.items)


class DiscountRequestResponse(BaseResponse):
    request_id: int
    required_role: str
    status: str
    amount: Decimal
    idempotent: bool = False
    assigned_to_user_id: Optional[int] = None
    assigned_reason: Optional[str] = None
    photos: List[str] = Field(default_factory=list)


class RequestLineResponse(BaseModel):
    article_id: int
    sku: Optional[str] = None
    name: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: int
    discount_percent: Decimal
    line_amount: Decimal


class DecisionResponse(BaseModel):
    approver_id: int
    approver_name: Optional[str] = None
    approver_role: str
    action: str
    comment: Optional[str] = None
    acted_at: datetime


class DiscountRequestDetail(BaseResponse):
    request: Dict[str, Any]
    items: List[RequestLineResponse]
    decisions: List[DecisionResponse]
    photos: List[str]


class BuyerOption(BaseModel):
    id: int
    code: str
    name: str


class SiteOption(BaseModel):
    id: int
    buyer_id: int
    site_code: str
    site_name: str


class ArticleOption(BaseModel):
    id: int
    sku: str
    name: str
    sell_price: Optional[Decimal] = None
    division_id: Optional[int] = None


class SubmitterProfile(BaseModel):
    id: int
    first_name: str
    last_name: str
    pda_number: Optional[str] = None
    division_id: Optional[int] = None
    division_name: Optional[str] = None


class FormMetaResponse(BaseModel):
    """Catálogos para el formulario de solicitud"""
    buyers: List[BuyerOption]
    sites: List[SiteOption]
    articles: List[ArticleOption]
    me: SubmitterProfile
