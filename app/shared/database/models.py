# app/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON,
    Numeric, ForeignKey, UniqueConstraint, CheckConstraint, Index,
    func
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


# =====================================================
# DATOS MAESTROS (solo lectura para el flujo)
# =====================================================

class Division(Base):
    """Modelo de División"""
    __tablename__ = "divisions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # use_alter=True para evitar referencia circular con users
    default_team_leader_id = Column(
        Integer, ForeignKey("users.id", use_alter=True, name="fk_divisions_default_team_leader")
    )
    created_at = Column(DateTime, server_default=func.current_timestamp())

    # Relationships
    users = relationship("User", back_populates="division", foreign_keys="User.division_id")
    default_team_leader = relationship("User", foreign_keys=[default_team_leader_id], post_update=True)


class User(Base):
    """Modelo de Usuario"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    role = Column(String(50), default='agent', nullable=False, index=True)
    division_id = Column(Integer, ForeignKey("divisions.id"), index=True)
    # Team lead preferido del agente (solo rol agent)
    team_leader_id = Column(Integer, ForeignKey("users.id"))
    pda_number = Column(String(50))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.current_timestamp())

    # Relationships
    division = relationship("Division", back_populates="users", foreign_keys=[division_id])
    team_leader = relationship("User", remote_side=[id], foreign_keys=[team_leader_id])

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Article(Base):
    """Modelo de Artículo"""
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    sell_price = Column(Numeric(12, 2))
    division_id = Column(Integer, ForeignKey("divisions.id"))
    created_at = Column(DateTime, server_default=func.current_timestamp())


class Buyer(Base):
    """Modelo de Comprador"""
    __tablename__ = "buyers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)

    sites = relationship("BuyerSite", back_populates="buyer")


class BuyerSite(Base):
    """Modelo de Objeto (sucursal) del comprador"""
    __tablename__ = "buyer_sites"
    __table_args__ = (
        UniqueConstraint("buyer_id", "site_code", name="uq_buyer_sites_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("buyers.id"), nullable=False, index=True)
    site_code = Column(String(50), nullable=False)
    site_name = Column(String(255), nullable=False)

    buyer = relationship("Buyer", back_populates="sites")


# =====================================================
# SOLICITUDES DE DESCUENTO
# =====================================================

class DiscountRequest(Base):
    """Modelo de Solicitud de Descuento"""
    __tablename__ = "requests"
    __table_args__ = (
        UniqueConstraint("agent_id", "idempotency_key", name="uq_requests_agent_idempotency"),
        CheckConstraint("amount >= 0", name="ck_requests_amount_non_negative"),
        CheckConstraint("status IN ('pending','approved','rejected')", name="ck_requests_status"),
        Index("ix_requests_pending_role", "status", "required_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Snapshot de la división del agente al momento de crear
    division_id = Column(Integer, ForeignKey("divisions.id"), index=True)
    buyer_id = Column(Integer, ForeignKey("buyers.id"), nullable=False)
    site_id = Column(Integer, ForeignKey("buyer_sites.id"))

    # Formato antiguo de un solo artículo (sin líneas)
    article_id = Column(Integer, ForeignKey("articles.id"))
    quantity = Column(Integer)

    amount = Column(Numeric(12, 2), nullable=False)
    invoice_ref = Column(String(100))
    reason = Column(Text)

    # Fijados al crear, nunca se recalculan
    required_role = Column(String(50), nullable=False)
    assigned_to_user_id = Column(Integer, ForeignKey("users.id"), index=True)
    assigned_reason = Column(String(50))
    assigned_at = Column(DateTime)

    status = Column(String(20), nullable=False, default='pending')
    idempotency_key = Column(String(128))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    # Relationships
    agent = relationship("User", foreign_keys=[agent_id])
    assignee = relationship("User", foreign_keys=[assigned_to_user_id])
    division = relationship("Division")
    buyer = relationship("Buyer")
    site = relationship("BuyerSite")
    article = relationship("Article")
    items = relationship("RequestItem", back_populates="request", order_by="RequestItem.id")
    photos = relationship("RequestPhoto", back_populates="request", order_by="RequestPhoto.id")
    decisions = relationship("ApprovalDecision", back_populates="request", order_by="ApprovalDecision.acted_at")


class RequestItem(Base):
    """Línea de artículo dentro de una solicitud"""
    __tablename__ = "request_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_request_items_quantity_positive"),
        CheckConstraint(
            "discount_percent IS NULL OR (discount_percent >= 0 AND discount_percent <= 100)",
            name="ck_request_items_discount_range"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Nullable: filas antiguas no guardaban el porcentaje
    discount_percent = Column(Numeric(5, 2))
    line_amount = Column(Numeric(12, 2), nullable=False)

    request = relationship("DiscountRequest", back_populates="items")
    article = relationship("Article")


class RequestPhoto(Base):
    """Referencia opaca a una foto subida por el colaborador de uploads"""
    __tablename__ = "request_photos"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)

    request = relationship("DiscountRequest", back_populates="photos")


# =====================================================
# APROBACIONES Y AUDITORÍA
# =====================================================

class ApprovalDecision(Base):
    """Decisión terminal sobre una solicitud (una por solicitud)"""
    __tablename__ = "approvals"
    __table_args__ = (
        UniqueConstraint("request_id", name="uq_approvals_request"),
        CheckConstraint("action IN ('approved','rejected')", name="ck_approvals_action"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    approver_role = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    comment = Column(Text)
    acted_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    request = relationship("DiscountRequest", back_populates="decisions")
    approver = relationship("User")


class RequestEvent(Base):
    """Evento de auditoría (solo inserción)"""
    __tablename__ = "request_events"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False, index=True)
    actor_user_id = Column(Integer, ForeignKey("users.id"))
    event = Column(String(50), nullable=False)
    meta = Column(JSON, default=dict)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
