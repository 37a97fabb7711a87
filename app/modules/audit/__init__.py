# app/modules/audit/__init__.py
"""
Módulo de Auditoría - Bitácora de solicitudes

Registra los eventos de creación y decisión de cada solicitud.
Los eventos se escriben una sola vez y nunca se modifican.
"""

from .repository import AuditRepository

__all__ = [
    "AuditRepository"
]
