# app/modules/audit/repository.py
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime

from app.shared.database.models import RequestEvent
from app.shared.schemas.workflow import RequestEventType


class AuditRepository:
    """
    Bitácora de eventos de solicitudes, solo inserción.

    No hace commit: el evento se escribe dentro de la transacción de quien
    llama, así el evento y el cambio de estado se confirman juntos.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        request_id: int,
        event: RequestEventType,
        actor_user_id: Optional[int],
        meta: Optional[Dict[str, Any]] = None
    ) -> RequestEvent:
        """Agregar evento"""
        entry = RequestEvent(
            request_id=request_id,
            actor_user_id=actor_user_id,
            event=RequestEventType(event).value,
            meta=meta or {},
            created_at=datetime.now()
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def events_for_request(self, request_id: int) -> List[RequestEvent]:
        """Eventos de una solicitud en orden de escritura"""
        return self.db.query(RequestEvent).filter(
            RequestEvent.request_id == request_id
        ).order_by(RequestEvent.id).all()
