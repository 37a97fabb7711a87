# app/modules/approvals/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_, update
from typing import List, Optional
from datetime import datetime
import logging

from app.shared.database.models import DiscountRequest, ApprovalDecision, User
from app.shared.schemas.workflow import DecisionAction, RequestEventType, RequestStatus, Role
from app.modules.audit.repository import AuditRepository

logger = logging.getLogger(__name__)

class ApprovalsRepository:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRepository(db)

    def get_request(self, request_id: int) -> Optional[DiscountRequest]:
        return self.db.query(DiscountRequest).filter(DiscountRequest.id == request_id).first()

    def record_decision(
        self,
        request_id: int,
        approver: User,
        action: DecisionAction,
        comment: Optional[str]
    ) -> bool:
        """
        Insertar la decisión y pasar la solicitud a estado terminal.

        El cambio de estado es un UPDATE condicionado a ``status = 'pending'``;
        si no afecta exactamente una fila otra transacción ya decidió y se
        hace rollback de todo (incluida la fila de decisión).

        Returns:
            bool: True si esta transacción hizo la transición
        """
        try:
            decision = ApprovalDecision(
                request_id=request_id,
                approver_id=approver.id,
                approver_role=approver.role,
                action=action.value,
                comment=comment or None,
                acted_at=datetime.now()
            )
            self.db.add(decision)
            self.db.flush()

            result = self.db.execute(
                update(DiscountRequest)
                .where(
                    and_(
                        DiscountRequest.id == request_id,
                        DiscountRequest.status == RequestStatus.PENDING.value
                    )
                )
                .values(status=action.value)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(f"Solicitud #{request_id} ya decidida por otra transacción")
                return False

            self.audit.record(
                request_id=request_id,
                event=RequestEventType(action.value),
                actor_user_id=approver.id,
                meta={"approver_role": approver.role, "comment": comment or None}
            )

            self.db.commit()
            logger.info(f"Solicitud #{request_id} {action.value} por usuario {approver.id} ({approver.role})")
            return True

        except Exception:
            self.db.rollback()
            raise

    # ==================== PROYECCIONES DE LECTURA ====================

    def _request_query(self):
        return self.db.query(DiscountRequest).options(
            joinedload(DiscountRequest.agent),
            joinedload(DiscountRequest.buyer),
            joinedload(DiscountRequest.site),
        )

    def get_pending(
        self,
        required_role: str,
        division_id: Optional[int] = None,
        assignee_ids: Optional[List[int]] = None
    ) -> List[DiscountRequest]:
        """Pendientes del nivel, opcionalmente acotadas por división o responsable"""
        query = self._request_query().filter(
            and_(
                DiscountRequest.status == RequestStatus.PENDING.value,
                DiscountRequest.required_role == required_role
            )
        )
        if division_id is not None:
            query = query.filter(DiscountRequest.division_id == division_id)
        if assignee_ids is not None:
            query = query.filter(DiscountRequest.assigned_to_user_id.in_(assignee_ids))
        return query.order_by(DiscountRequest.created_at.desc(), DiscountRequest.id.desc()).all()

    def get_unassigned_pending(self, division_id: int) -> List[DiscountRequest]:
        """Pendientes de nivel team sin snapshot de responsable"""
        return self._request_query().filter(
            and_(
                DiscountRequest.status == RequestStatus.PENDING.value,
                DiscountRequest.required_role == Role.TEAM_LEAD.value,
                DiscountRequest.division_id == division_id,
                DiscountRequest.assigned_to_user_id.is_(None)
            )
        ).all()

    def _decision_query(self):
        return self.db.query(ApprovalDecision).join(
            DiscountRequest, DiscountRequest.id == ApprovalDecision.request_id
        ).options(
            joinedload(ApprovalDecision.approver),
            joinedload(ApprovalDecision.request).joinedload(DiscountRequest.agent),
            joinedload(ApprovalDecision.request).joinedload(DiscountRequest.buyer),
            joinedload(ApprovalDecision.request).joinedload(DiscountRequest.site),
        )

    def get_decisions_by_approver(self, approver_id: int) -> List[ApprovalDecision]:
        return self._decision_query().filter(
            ApprovalDecision.approver_id == approver_id
        ).order_by(ApprovalDecision.acted_at.desc(), ApprovalDecision.id.desc()).all()

    def get_decisions_by_role(self, approver_role: str, division_id: Optional[int] = None) -> List[ApprovalDecision]:
        query = self._decision_query().filter(ApprovalDecision.approver_role == approver_role)
        if division_id is not None:
            query = query.filter(DiscountRequest.division_id == division_id)
        return query.order_by(ApprovalDecision.acted_at.desc(), ApprovalDecision.id.desc()).all()

    def get_all_decisions(self) -> List[ApprovalDecision]:
        return self._decision_query().order_by(
            ApprovalDecision.acted_at.desc(), ApprovalDecision.id.desc()
        ).all()
