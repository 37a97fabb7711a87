# app/modules/discounts/assignment_service.py
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.shared.database.models import User, Division
from app.shared.schemas.workflow import Role, AssignmentReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentResolution:
    """Resultado de la resolución: responsable (o None) y motivo"""
    assignee_id: Optional[int]
    reason: AssignmentReason

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None


class AssigneeResolver:
    """
    Resuelve el único team lead que debe aprobar una solicitud de nivel team.

    Cadena de respaldo, cada paso validado contra el rol, la división
    y el estado activo actuales:
    1. team lead configurado en el agente
    2. team lead por defecto de la división
    3. team lead con menor id en la división
    4. division manager con menor id en la división
    5. nadie (la solicitud queda sin asignar)

    Se evalúa al crear la solicitud, dentro de la misma sesión/transacción.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, agent_id: int, division_id: Optional[int]) -> AssignmentResolution:
        resolution = self._resolve(agent_id, division_id)
        logger.info(
            f"Asignación agente={agent_id} división={division_id} -> "
            f"{resolution.assignee_id} ({resolution.reason.value})"
        )
        return resolution

    def _resolve(self, agent_id: int, division_id: Optional[int]) -> AssignmentResolution:
        # 1) Preferencia del agente
        agent_tl = self.db.query(User.team_leader_id).filter(User.id == agent_id).scalar()
        if agent_tl and self._is_valid_team_lead(agent_tl, division_id):
            return AssignmentResolution(agent_tl, AssignmentReason.AGENT_PREFERENCE)

        if division_id is None:
            return AssignmentResolution(None, AssignmentReason.NONE)

        # 2) Default de la división
        division_tl = self.db.query(Division.default_team_leader_id).filter(
            Division.id == division_id
        ).scalar()
        if division_tl and self._is_valid_team_lead(division_tl, division_id):
            return AssignmentResolution(division_tl, AssignmentReason.DIVISION_DEFAULT)

        # 3) Primer team lead de la división (determinista)
        first_tl = self._first_in_division(Role.TEAM_LEAD, division_id)
        if first_tl is not None:
            return AssignmentResolution(first_tl, AssignmentReason.FIRST_IN_DIVISION)

        # 4) Primer division manager de la división
        first_dm = self._first_in_division(Role.DIVISION_MANAGER, division_id)
        if first_dm is not None:
            return AssignmentResolution(first_dm, AssignmentReason.DIVISION_MANAGER_FALLBACK)

        return AssignmentResolution(None, AssignmentReason.NONE)

    def _is_valid_team_lead(self, user_id: int, division_id: Optional[int]) -> bool:
        if division_id is None:
            return False
        found = self.db.query(User.id).filter(
            User.id == user_id,
            User.role == Role.TEAM_LEAD.value,
            User.division_id == division_id,
            User.is_active == True
        ).first()
        return found is not None

    def _first_in_division(self, role: Role, division_id: int) -> Optional[int]:
        return self.db.query(User.id).filter(
            User.role == role.value,
            User.division_id == division_id,
            User.is_active == True
        ).order_by(User.id.asc()).limit(1).scalar()


def effective_assignee_id(db: Session, discount_request) -> Optional[int]:
    """
    Responsable de una solicitud de nivel team.

    Se usa el snapshot tomado al crear. Solo las filas sin snapshot
    (antiguas o creadas sin responsable) se resuelven de nuevo.
    """
    if discount_request.required_role != Role.TEAM_LEAD.value:
        return None
    if discount_request.assigned_to_user_id is not None:
        return discount_request.assigned_to_user_id
    resolution = AssigneeResolver(db).resolve(discount_request.agent_id, discount_request.division_id)
    return resolution.assignee_id
