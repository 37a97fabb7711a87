# app/modules/approvals/__init__.py
"""
Módulo de Aprobaciones

Decisión de los aprobadores sobre solicitudes pendientes:
- Guardas de nivel, división y responsable
- Transición pending → approved/rejected con compare-and-set
- Bandeja de pendientes e historiales por rol

Arquitectura:
- router.py: Endpoints de aprobación
- service.py: Guardas, visibilidad y proyecciones
- repository.py: Registro de la decisión y consultas
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import ApprovalsService, ensure_can_view
from .repository import ApprovalsRepository

__all__ = [
    "router",
    "ApprovalsService",
    "ApprovalsRepository",
    "ensure_can_view"
]
