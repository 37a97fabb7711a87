# app/modules/approvals/service.py
from typing import List
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from .repository import ApprovalsRepository
from .schemas import (
    ApprovalActionResponse, PendingRequestItem, PendingListResponse,
    HistoryItem, HistoryListResponse
)
from app.core.exceptions import (
    ValidationFailed, NotFoundError, WrongRoleError, ForbiddenError,
    AlreadyDecidedError, WorkflowError
)
from app.modules.discounts.assignment_service import effective_assignee_id
from app.shared.database.models import DiscountRequest, ApprovalDecision, User
from app.shared.schemas.workflow import Role, RequestStatus, DecisionAction

logger = logging.getLogger(__name__)

DIVISION_SCOPED_ROLES = {Role.TEAM_LEAD.value, Role.DIVISION_MANAGER.value}
UNRESTRICTED_VIEWERS = {Role.ADMIN.value, Role.SALES_DIRECTOR.value}


def ensure_can_view(db: Session, user: User, discount_request: DiscountRequest) -> None:
    """
    Verificar que el usuario puede ver la solicitud.

    - agent: solo las propias
    - team_lead / division_manager: solo de su división; el team lead
      además debe ser el responsable asignado
    - sales_director / admin: todas
    """
    if user.role in UNRESTRICTED_VIEWERS:
        return

    if user.role == Role.AGENT.value:
        if discount_request.agent_id != user.id:
            raise ForbiddenError("Solo puedes ver tus propias solicitudes")
        return

    if user.role in DIVISION_SCOPED_ROLES:
        if discount_request.division_id is None or discount_request.division_id != user.division_id:
            raise ForbiddenError("La solicitud pertenece a otra división")
        if user.role == Role.TEAM_LEAD.value:
            if effective_assignee_id(db, discount_request) != user.id:
                raise ForbiddenError("La solicitud no está asignada a ti")
        return

    raise ForbiddenError("Rol sin acceso a solicitudes")


def parse_action(action) -> DecisionAction:
    try:
        return DecisionAction(action)
    except ValueError:
        raise ValidationFailed(f"Acción inválida: {action}", code="bad_action")


class ApprovalsService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = ApprovalsRepository(db)

    async def act(
        self,
        request_id: int,
        action: str,
        comment: str,
        user: User
    ) -> ApprovalActionResponse:
        """
        Aprobar o rechazar una solicitud pendiente.

        Guardas en orden: existe, sigue pendiente, rol igual al requerido,
        misma división (roles con división) y responsable asignado (team lead).
        La transición es compare-and-set; si otro aprobador ganó la carrera
        se responde already_decided.
        """
        decision = parse_action(action)

        discount_request = self.repository.get_request(request_id)
        if discount_request is None:
            raise NotFoundError(f"Solicitud {request_id} no existe")

        if discount_request.status != RequestStatus.PENDING.value:
            raise AlreadyDecidedError(f"Solicitud {request_id} ya está {discount_request.status}")

        if discount_request.required_role != user.role:
            raise WrongRoleError(
                f"La solicitud requiere {discount_request.required_role}, tu rol es {user.role}"
            )

        if discount_request.required_role in DIVISION_SCOPED_ROLES:
            # Una solicitud sin división no la decide nadie por división, ni un aprobador sin división
            if discount_request.division_id is None or discount_request.division_id != user.division_id:
                raise ForbiddenError("La solicitud pertenece a otra división")

        if discount_request.required_role == Role.TEAM_LEAD.value:
            assignee_id = effective_assignee_id(self.db, discount_request)
            if assignee_id != user.id:
                raise ForbiddenError("La solicitud está asignada a otro team lead")

        try:
            transitioned = self.repository.record_decision(
                request_id=request_id,
                approver=user,
                action=decision,
                comment=comment
            )
        except IntegrityError:
            logger.warning(f"Decisión duplicada para solicitud #{request_id}")
            raise AlreadyDecidedError(f"Solicitud {request_id} ya fue decidida")
        except WorkflowError:
            raise
        except Exception as e:
            logger.exception(f"Error registrando decisión de solicitud #{request_id}")
            raise HTTPException(
                status_code=500,
                detail=f"Error registrando decisión: {str(e)}"
            )

        if not transitioned:
            raise AlreadyDecidedError(f"Solicitud {request_id} ya fue decidida")

        return ApprovalActionResponse(
            success=True,
            message=f"Solicitud {decision.value}",
            request_id=request_id,
            status=decision.value,
            approver_id=user.id,
            approver_role=user.role
        )

    # ==================== BANDEJA Y HISTORIALES ====================

    async def get_pending(self, user: User) -> PendingListResponse:
        """Pendientes que el usuario puede decidir"""
        if user.role == Role.TEAM_LEAD.value:
            rows = self._team_lead_pending(user)
        elif user.role == Role.DIVISION_MANAGER.value:
            rows = [] if user.division_id is None else self.repository.get_pending(
                Role.DIVISION_MANAGER.value, division_id=user.division_id
            )
        elif user.role == Role.SALES_DIRECTOR.value:
            rows = self.repository.get_pending(Role.SALES_DIRECTOR.value)
        else:
            raise WrongRoleError("Solo aprobadores tienen bandeja de pendientes")

        items = [self._pending_row(row) for row in rows]
        return PendingListResponse(
            success=True,
            message=f"{len(items)} solicitudes pendientes",
            items=items,
            total=len(items)
        )

    def _team_lead_pending(self, user: User) -> List[DiscountRequest]:
        if user.division_id is None:
            return []
        rows = self.repository.get_pending(
            Role.TEAM_LEAD.value,
            division_id=user.division_id,
            assignee_ids=[user.id]
        )
        # Filas sin snapshot: se resuelve el responsable al vuelo
        for row in self.repository.get_unassigned_pending(user.division_id):
            if effective_assignee_id(self.db, row) == user.id:
                rows.append(row)
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows

    async def get_my_history(self, user: User) -> HistoryListResponse:
        decisions = self.repository.get_decisions_by_approver(user.id)
        return self._history(decisions, "Mis decisiones")

    async def get_role_history(self, user: User) -> HistoryListResponse:
        """Decisiones tomadas por el rol del usuario (acotadas a su división si aplica)"""
        division_id = user.division_id if user.role in DIVISION_SCOPED_ROLES else None
        if user.role in DIVISION_SCOPED_ROLES and division_id is None:
            return self._history([], f"Decisiones de {user.role}")
        decisions = self.repository.get_decisions_by_role(user.role, division_id=division_id)
        return self._history(decisions, f"Decisiones de {user.role}")

    async def get_all_history(self) -> HistoryListResponse:
        return self._history(self.repository.get_all_decisions(), "Todas las decisiones")

    async def get_team_lead_history(self, manager: User) -> HistoryListResponse:
        """Decisiones de los team leads de la división del manager"""
        if manager.division_id is None:
            return self._history([], "Decisiones de team leads")
        decisions = self.repository.get_decisions_by_role(
            Role.TEAM_LEAD.value, division_id=manager.division_id
        )
        return self._history(decisions, "Decisiones de team leads")

    def _history(self, decisions: List[ApprovalDecision], message: str) -> HistoryListResponse:
        items = [self._history_row(decision) for decision in decisions]
        return HistoryListResponse(success=True, message=message, items=items, total=len(items))

    def _pending_row(self, row: DiscountRequest) -> PendingRequestItem:
        return PendingRequestItem(
            id=row.id,
            agent_id=row.agent_id,
            agent_name=row.agent.full_name if row.agent else None,
            division_id=row.division_id,
            buyer_code=row.buyer.code if row.buyer else None,
            buyer_name=row.buyer.name if row.buyer else None,
            site_name=row.site.site_name if row.site else None,
            amount=row.amount,
            invoice_ref=row.invoice_ref,
            reason=row.reason,
            required_role=row.required_role,
            assigned_to_user_id=row.assigned_to_user_id,
            assigned_reason=row.assigned_reason,
            status=row.status,
            created_at=row.created_at
        )

    def _history_row(self, decision: ApprovalDecision) -> HistoryItem:
        request = decision.request
        return HistoryItem(
            request_id=request.id,
            agent_id=request.agent_id,
            agent_name=request.agent.full_name if request.agent else None,
            division_id=request.division_id,
            buyer_name=request.buyer.name if request.buyer else None,
            amount=request.amount,
            required_role=request.required_role,
            status=request.status,
            approver_id=decision.approver_id,
            approver_name=decision.approver.full_name if decision.approver else None,
            approver_role=decision.approver_role,
            action=decision.action,
            comment=decision.comment,
            acted_at=decision.acted_at
        )
