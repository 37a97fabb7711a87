# app/modules/discounts/service.py
from typing import Dict, Any, List, Optional, Tuple
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, date
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from .repository import DiscountsRepository
from .schemas import (
    DiscountRequestCreate, DiscountRequestResponse, DiscountRequestDetail,
    RequestLineCreate, RequestLineResponse, DecisionResponse,
    FormMetaResponse, BuyerOption, SiteOption, ArticleOption, SubmitterProfile
)
from .tier_service import required_tier, to_money
from .assignment_service import AssigneeResolver, AssignmentResolution
from app.core.exceptions import ValidationFailed, NotFoundError, WorkflowError
from app.shared.database.models import DiscountRequest, RequestItem, Article, User
from app.shared.schemas.common import PaginatedResponse
from app.shared.schemas.workflow import Role, AssignmentReason

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_line_amount(unit_price: Decimal, quantity: int, discount_percent: Decimal) -> Decimal:
    """precio × cantidad × (1 − descuento/100), redondeado a centavos"""
    gross = to_money(unit_price) * quantity
    return round_money(gross * (1 - to_money(discount_percent) / HUNDRED))


def solve_discount_percent(unit_price, quantity: int, line_amount) -> Decimal:
    """Descuento implícito 1 − monto/bruto, limitado a [0, 100]"""
    if not unit_price or not quantity:
        return Decimal("0.00")
    gross = to_money(unit_price) * quantity
    if gross <= 0:
        return Decimal("0.00")
    percent = (1 - to_money(line_amount) / gross) * HUNDRED
    percent = max(Decimal("0"), min(HUNDRED, percent))
    return round_money(percent)


def line_discount_percent(item: RequestItem) -> Decimal:
    """
    Porcentaje de descuento de una línea para mostrar.

    Las líneas nuevas guardan el porcentaje. Las filas antiguas no lo tienen
    y se reconstruye a partir del precio actual del artículo.
    """
    if item.discount_percent is not None:
        return to_money(item.discount_percent)

    price = item.article.sell_price if item.article is not None else None
    return solve_discount_percent(price, item.quantity, item.line_amount)


class DiscountsService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = DiscountsRepository(db)
        self.resolver = AssigneeResolver(db)

    async def create_discount_request(
        self,
        discount_data: DiscountRequestCreate,
        submitter: User,
        photo_urls: Optional[List[str]] = None
    ) -> DiscountRequestResponse:
        """
        Crear solicitud de descuento.

        La búsqueda por idempotency key, el cálculo de nivel/responsable y
        los inserts ocurren en la misma transacción de la sesión. Un reintento
        con la misma key devuelve la solicitud existente sin escribir nada.
        """
        photo_urls = list(photo_urls or [])
        key = discount_data.idempotency_key

        try:
            replay = self.find_replay(submitter.id, key)
            if replay is not None:
                return replay

            request_data, lines = self._build_request(discount_data, submitter)

            try:
                discount_request = self.repository.create_request_atomic(
                    request_data=request_data,
                    lines=lines,
                    photo_urls=photo_urls
                )
            except IntegrityError:
                # Otro reintento concurrente ganó la carrera con la misma key
                if not key:
                    raise
                existing = self.repository.find_by_idempotency_key(submitter.id, key)
                if existing is None:
                    raise
                logger.info(f"Reintento concurrente resuelto como idempotente: #{existing.id}")
                return self._replay(existing)

            return DiscountRequestResponse(
                success=True,
                message="Solicitud de descuento enviada para aprobación",
                request_id=discount_request.id,
                required_role=discount_request.required_role,
                status=discount_request.status,
                amount=discount_request.amount,
                idempotent=False,
                assigned_to_user_id=discount_request.assigned_to_user_id,
                assigned_reason=discount_request.assigned_reason,
                photos=photo_urls
            )

        except WorkflowError:
            raise
        except Exception as e:
            logger.exception("Error inesperado creando solicitud")
            raise HTTPException(
                status_code=500,
                detail=f"Error creando solicitud: {str(e)}"
            )

    def find_replay(self, agent_id: int, key: Optional[str]) -> Optional[DiscountRequestResponse]:
        """Respuesta idempotente si el agente ya usó la key, si no None"""
        if not key:
            return None
        existing = self.repository.find_by_idempotency_key(agent_id, key)
        if existing is None:
            return None
        return self._replay(existing)

    def _replay(self, existing: DiscountRequest) -> DiscountRequestResponse:
        logger.info(f"Idempotency key repetida, devolviendo solicitud #{existing.id}")
        return DiscountRequestResponse(
            success=True,
            message="Solicitud ya registrada",
            request_id=existing.id,
            required_role=existing.required_role,
            status=existing.status,
            amount=existing.amount,
            idempotent=True,
            assigned_to_user_id=existing.assigned_to_user_id,
            assigned_reason=existing.assigned_reason,
            photos=self.repository.get_photo_urls(existing.id)
        )

    def _build_request(
        self,
        discount_data: DiscountRequestCreate,
        submitter: User
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """Validar, calcular precios, nivel y responsable. No escribe nada."""
        if self.repository.get_buyer(discount_data.buyer_id) is None:
            raise ValidationFailed(f"Comprador {discount_data.buyer_id} no existe")

        site_id = discount_data.site_id
        if site_id is not None:
            site = self.repository.get_site(site_id)
            if site is None or site.buyer_id != discount_data.buyer_id:
                raise ValidationFailed(f"Objeto {site_id} no pertenece al comprador")

        if discount_data.has_lines:
            lines = self.price_lines(discount_data.items)
            total = sum((line["line_amount"] for line in lines), Decimal("0.00"))
            article_id, quantity = None, None
        else:
            lines = []
            total = round_money(discount_data.amount)
            article_id = discount_data.article_id
            quantity = discount_data.quantity
            if article_id is not None and not self.repository.get_articles([article_id]):
                raise ValidationFailed(f"Artículo {article_id} no existe")

        division_id = submitter.division_id
        tier = required_tier(total)

        resolution = AssignmentResolution(None, AssignmentReason.NONE)
        if tier is Role.TEAM_LEAD:
            resolution = self.resolver.resolve(submitter.id, division_id)

        logger.info(
            f"Solicitud de agente {submitter.id}: total={total} nivel={tier.value} "
            f"responsable={resolution.assignee_id}"
        )

        request_data = {
            "agent_id": submitter.id,
            "division_id": division_id,
            "buyer_id": discount_data.buyer_id,
            "site_id": site_id,
            "article_id": article_id,
            "quantity": quantity,
            "amount": total,
            "invoice_ref": discount_data.invoice_ref,
            "reason": discount_data.reason,
            "required_role": tier.value,
            "assigned_to_user_id": resolution.assignee_id,
            "assigned_reason": resolution.reason.value if tier is Role.TEAM_LEAD else None,
            "assigned_at": datetime.now() if resolution.is_assigned else None,
            "idempotency_key": discount_data.idempotency_key,
        }
        return request_data, lines

    def price_lines(self, items: List[RequestLineCreate]) -> List[Dict[str, Any]]:
        """Monto de cada línea: el del cliente si viene, si no con el precio actual"""
        articles: Dict[int, Article] = self.repository.get_articles(item.article_id for item in items)

        lines = []
        for item in items:
            article = articles.get(item.article_id)
            if article is None:
                raise ValidationFailed(f"Artículo {item.article_id} no existe")

            discount_percent = round_money(item.discount_percent)
            if item.line_amount is not None:
                line_amount = round_money(item.line_amount)
                if "discount_percent" not in item.model_fields_set:
                    discount_percent = solve_discount_percent(article.sell_price, item.quantity, line_amount)
            else:
                line_amount = compute_line_amount(article.sell_price or 0, item.quantity, discount_percent)

            lines.append({
                "article_id": article.id,
                "quantity": item.quantity,
                "discount_percent": discount_percent,
                "line_amount": line_amount,
            })
        return lines

    async def get_my_discount_requests(
        self,
        agent: User,
        status: Optional[str] = None,
        required_role: Optional[str] = None,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per: int = 10
    ) -> PaginatedResponse:
        """Historial del agente con filtros y paginación"""
        page = max(1, page)
        per = min(50, max(1, per))

        result = self.repository.get_requests_by_agent(
            agent_id=agent.id,
            status=status,
            required_role=required_role,
            on_date=on_date,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per=per
        )
        total = result["total"]

        return PaginatedResponse(
            items=[self._summary_row(row) for row in result["rows"]],
            total=total,
            page=page,
            size=per,
            pages=max(1, -(-total // per))
        )

    async def get_request_detail(self, request_id: int, viewer: User) -> DiscountRequestDetail:
        """Detalle con líneas, decisiones y fotos"""
        from app.modules.approvals.service import ensure_can_view

        discount_request = self.repository.get_request(request_id)
        if discount_request is None:
            raise NotFoundError(f"Solicitud {request_id} no existe")
        ensure_can_view(self.db, viewer, discount_request)

        items = self.repository.get_items(request_id)
        if items:
            lines = [
                RequestLineResponse(
                    article_id=item.article_id,
                    sku=item.article.sku if item.article else None,
                    name=item.article.name if item.article else None,
                    unit_price=item.article.sell_price if item.article else None,
                    quantity=item.quantity,
                    discount_percent=line_discount_percent(item),
                    line_amount=item.line_amount
                )
                for item in items
            ]
        elif discount_request.article_id:
            # Formato antiguo: la solicitud completa es una línea
            article = discount_request.article
            lines = [RequestLineResponse(
                article_id=discount_request.article_id,
                sku=article.sku if article else None,
                name=article.name if article else None,
                unit_price=article.sell_price if article else None,
                quantity=discount_request.quantity or 1,
                discount_percent=Decimal("0.00"),
                line_amount=discount_request.amount
            )]
        else:
            lines = []

        decisions = [
            DecisionResponse(
                approver_id=decision.approver_id,
                approver_name=decision.approver.full_name if decision.approver else None,
                approver_role=decision.approver_role,
                action=decision.action,
                comment=decision.comment,
                acted_at=decision.acted_at
            )
            for decision in discount_request.decisions
        ]

        return DiscountRequestDetail(
            success=True,
            message=f"Solicitud #{request_id}",
            request=self._summary_row(discount_request),
            items=lines,
            decisions=decisions,
            photos=self.repository.get_photo_urls(request_id)
        )

    async def get_form_meta(self, user: User) -> FormMetaResponse:
        """Compradores, objetos, artículos y perfil del usuario actual"""
        return FormMetaResponse(
            buyers=[
                BuyerOption(id=buyer.id, code=buyer.code, name=buyer.name)
                for buyer in self.repository.list_buyers()
            ],
            sites=[
                SiteOption(id=site.id, buyer_id=site.buyer_id, site_code=site.site_code, site_name=site.site_name)
                for site in self.repository.list_sites()
            ],
            articles=[
                ArticleOption(
                    id=article.id,
                    sku=article.sku,
                    name=article.name,
                    sell_price=article.sell_price,
                    division_id=article.division_id
                )
                for article in self.repository.list_articles()
            ],
            me=SubmitterProfile(
                id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                pda_number=user.pda_number,
                division_id=user.division_id,
                division_name=user.division.name if user.division else None
            )
        )

    async def get_request_photos(self, request_id: int, viewer: User) -> List[str]:
        from app.modules.approvals.service import ensure_can_view

        discount_request = self.repository.get_request(request_id)
        if discount_request is None:
            raise NotFoundError(f"Solicitud {request_id} no existe")
        ensure_can_view(self.db, viewer, discount_request)
        return self.repository.get_photo_urls(request_id)

    def _summary_row(self, row: DiscountRequest) -> Dict[str, Any]:
        return {
            "id": row.id,
            "agent_id": row.agent_id,
            "division_id": row.division_id,
            "buyer_id": row.buyer_id,
            "buyer_code": row.buyer.code if row.buyer else None,
            "buyer_name": row.buyer.name if row.buyer else None,
            "site_id": row.site_id,
            "site_name": row.site.site_name if row.site else None,
            "amount": float(row.amount),
            "invoice_ref": row.invoice_ref,
            "reason": row.reason,
            "required_role": row.required_role,
            "assigned_to_user_id": row.assigned_to_user_id,
            "assigned_reason": row.assigned_reason,
            "status": row.status,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }
