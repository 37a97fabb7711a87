# app/shared/schemas/workflow.py

"""
Enumeraciones cerradas del flujo de aprobación.

Roles y niveles de aprobación se representan como enums en lugar de
comparar strings sueltos en cada guard.
"""

from enum import Enum


class Role(str, Enum):
    """Roles de usuario"""
    AGENT = "agent"
    TEAM_LEAD = "team_lead"
    DIVISION_MANAGER = "division_manager"
    SALES_DIRECTOR = "sales_director"
    ADMIN = "admin"


# Niveles de aprobación, de menor a mayor
APPROVER_ROLES = (Role.TEAM_LEAD, Role.DIVISION_MANAGER, Role.SALES_DIRECTOR)


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class AssignmentReason(str, Enum):
    """Paso de la cadena de resolución que produjo el responsable"""
    AGENT_PREFERENCE = "agent_preference"
    DIVISION_DEFAULT = "division_default"
    FIRST_IN_DIVISION = "first_in_division"
    DIVISION_MANAGER_FALLBACK = "division_manager_fallback"
    NONE = "none"


class RequestEventType(str, Enum):
    CREATED = "created"
    APPROVED = "approved"
    REJECTED = "rejected"
