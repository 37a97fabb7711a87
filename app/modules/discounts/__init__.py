# app/modules/discounts/__init__.py
"""
Módulo de Descuentos - Solicitudes de Descuento

Este módulo maneja las solicitudes de descuento de los agentes:
- Precio de líneas y total de la solicitud
- Nivel de aprobación según el monto
- Resolución del team lead responsable
- Creación idempotente con fotos de evidencia

Arquitectura:
- router.py: Endpoints de solicitudes
- service.py: Lógica de negocio de solicitudes
- tier_service.py: Umbrales de aprobación
- assignment_service.py: Cadena de resolución del responsable
- repository.py: Acceso a datos de solicitudes
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import DiscountsService
from .repository import DiscountsRepository

__all__ = [
    "router",
    "DiscountsService",
    "DiscountsRepository"
]
