# app/modules/discounts/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_, func
from typing import List, Dict, Any, Optional, Iterable
from datetime import datetime, date, timedelta
import logging

from app.shared.database.models import (
    DiscountRequest, RequestItem, RequestPhoto, Article, Buyer, BuyerSite
)
from app.shared.schemas.workflow import RequestEventType, RequestStatus
from app.modules.audit.repository import AuditRepository

logger = logging.getLogger(__name__)

class DiscountsRepository:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRepository(db)

    # ==================== ESCRITURA ====================

    def create_request_atomic(
        self,
        request_data: Dict[str, Any],
        lines: List[Dict[str, Any]],
        photo_urls: List[str]
    ) -> DiscountRequest:
        """
        Crear solicitud, líneas, fotos y evento de auditoría en una sola transacción.

        Si algo falla se hace rollback y no queda ninguna fila visible.

        Raises:
            IntegrityError: si otra transacción ya usó la misma idempotency key
        """
        try:
            discount_request = DiscountRequest(
                status=RequestStatus.PENDING.value,
                created_at=datetime.now(),
                **request_data
            )
            self.db.add(discount_request)
            self.db.flush()  # Obtener discount_request.id

            for line in lines:
                self.db.add(RequestItem(request_id=discount_request.id, **line))

            for url in photo_urls:
                self.db.add(RequestPhoto(request_id=discount_request.id, url=url))

            self.audit.record(
                request_id=discount_request.id,
                event=RequestEventType.CREATED,
                actor_user_id=discount_request.agent_id,
                meta={
                    "required_role": discount_request.required_role,
                    "amount": str(discount_request.amount),
                    "assigned_to_user_id": discount_request.assigned_to_user_id,
                    "assigned_reason": discount_request.assigned_reason,
                    "lines": len(lines),
                    "photos": len(photo_urls)
                }
            )

            self.db.commit()
            self.db.refresh(discount_request)

            logger.info(f"Solicitud #{discount_request.id} creada ({len(lines)} líneas)")
            return discount_request

        except Exception:
            self.db.rollback()
            raise

    # ==================== LECTURA ====================

    def find_by_idempotency_key(self, agent_id: int, key: str) -> Optional[DiscountRequest]:
        return self.db.query(DiscountRequest).filter(
            and_(
                DiscountRequest.agent_id == agent_id,
                DiscountRequest.idempotency_key == key
            )
        ).order_by(DiscountRequest.id.desc()).first()

    def get_photo_urls(self, request_id: int) -> List[str]:
        rows = self.db.query(RequestPhoto.url).filter(
            RequestPhoto.request_id == request_id
        ).order_by(RequestPhoto.id).all()
        return [row.url for row in rows]

    def get_articles(self, article_ids: Iterable[int]) -> Dict[int, Article]:
        ids = sorted(set(article_ids))
        if not ids:
            return {}
        articles = self.db.query(Article).filter(Article.id.in_(ids)).all()
        return {article.id: article for article in articles}

    def get_buyer(self, buyer_id: int) -> Optional[Buyer]:
        return self.db.query(Buyer).filter(Buyer.id == buyer_id).first()

    def get_site(self, site_id: int) -> Optional[BuyerSite]:
        return self.db.query(BuyerSite).filter(BuyerSite.id == site_id).first()

    def list_buyers(self) -> List[Buyer]:
        return self.db.query(Buyer).order_by(Buyer.code).all()

    def list_sites(self) -> List[BuyerSite]:
        return self.db.query(BuyerSite).order_by(BuyerSite.site_code).all()

    def list_articles(self) -> List[Article]:
        return self.db.query(Article).order_by(Article.sku).all()

    def get_request(self, request_id: int) -> Optional[DiscountRequest]:
        return self.db.query(DiscountRequest).options(
            joinedload(DiscountRequest.agent),
            joinedload(DiscountRequest.buyer),
            joinedload(DiscountRequest.site),
            joinedload(DiscountRequest.article),
        ).filter(DiscountRequest.id == request_id).first()

    def get_requests_by_agent(
        self,
        agent_id: int,
        status: Optional[str] = None,
        required_role: Optional[str] = None,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per: int = 10
    ) -> Dict[str, Any]:
        """Historial del agente con filtros y paginación"""
        query = self.db.query(DiscountRequest).filter(DiscountRequest.agent_id == agent_id)

        if status:
            query = query.filter(DiscountRequest.status == status)
        if required_role:
            query = query.filter(DiscountRequest.required_role == required_role)
        if on_date:
            query = query.filter(func.date(DiscountRequest.created_at) == on_date.isoformat())
        else:
            if date_from:
                query = query.filter(DiscountRequest.created_at >= datetime.combine(date_from, datetime.min.time()))
            if date_to:
                end = datetime.combine(date_to, datetime.min.time()) + timedelta(days=1)
                query = query.filter(DiscountRequest.created_at < end)

        total = query.count()
        rows = query.options(
            joinedload(DiscountRequest.buyer),
            joinedload(DiscountRequest.site),
            joinedload(DiscountRequest.article),
        ).order_by(DiscountRequest.id.desc()).offset((page - 1) * per).limit(per).all()

        return {"rows": rows, "total": total}

    def get_items(self, request_id: int) -> List[RequestItem]:
        return self.db.query(RequestItem).options(
            joinedload(RequestItem.article)
        ).filter(RequestItem.request_id == request_id).order_by(RequestItem.id).all()
