# app/modules/approvals/router.py
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import (
    get_approver_user, get_division_manager_user, get_sales_director_user
)
from app.shared.database.models import User
from app.shared.services.notification_service import NotificationService, get_notifier
from .service import ApprovalsService
from .schemas import (
    ApprovalAction, LegacyActionBody, ApprovalActionResponse,
    PendingListResponse, HistoryListResponse
)

router = APIRouter()


async def _act_and_notify(
    service: ApprovalsService,
    request_id: int,
    action: str,
    comment: Optional[str],
    user: User,
    background_tasks: BackgroundTasks,
    notifier: NotificationService
) -> ApprovalActionResponse:
    result = await service.act(request_id, action, comment, user)
    background_tasks.add_task(notifier.notify_decision, result.request_id, user.id)
    return result


@router.post("/act", response_model=ApprovalActionResponse)
async def act_on_request(
    body: ApprovalAction,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_approver_user),
    notifier: NotificationService = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """
    Aprobar o rechazar una solicitud

    **Validaciones (en orden):**
    - not_found: la solicitud no existe
    - already_decided: ya no está pendiente
    - wrong_role: tu rol no es el nivel requerido
    - forbidden: otra división, o no eres el team lead asignado

    La primera decisión gana; cualquier otra recibe 409 already_decided.
    """
    service = ApprovalsService(db)
    return await _act_and_notify(
        service, body.id, body.action, body.comment, current_user, background_tasks, notifier
    )


@router.post("/{request_id}/{action}", response_model=ApprovalActionResponse)
async def act_on_request_legacy(
    request_id: int,
    action: str,
    background_tasks: BackgroundTasks,
    body: Optional[LegacyActionBody] = None,
    current_user: User = Depends(get_approver_user),
    notifier: NotificationService = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """Formato anterior: POST /approvals/{id}/approved | /approvals/{id}/rejected"""
    service = ApprovalsService(db)
    comment = body.comment if body else None
    return await _act_and_notify(
        service, request_id, action, comment, current_user, background_tasks, notifier
    )


@router.get("/pending", response_model=PendingListResponse)
async def get_pending_requests(
    current_user: User = Depends(get_approver_user),
    db: Session = Depends(get_db)
):
    """
    Bandeja de pendientes del aprobador

    - team_lead: asignadas a mí
    - division_manager: de mi división
    - sales_director: todas las de su nivel
    """
    service = ApprovalsService(db)
    return await service.get_pending(current_user)


@router.get("/my-history", response_model=HistoryListResponse)
async def get_my_history(
    current_user: User = Depends(get_approver_user),
    db: Session = Depends(get_db)
):
    service = ApprovalsService(db)
    return await service.get_my_history(current_user)


@router.get("/role-history", response_model=HistoryListResponse)
async def get_role_history(
    current_user: User = Depends(get_approver_user),
    db: Session = Depends(get_db)
):
    """Decisiones tomadas por mi rol (en mi división si el rol tiene división)"""
    service = ApprovalsService(db)
    return await service.get_role_history(current_user)


@router.get("/all-history", response_model=HistoryListResponse)
async def get_all_history(
    current_user: User = Depends(get_sales_director_user),
    db: Session = Depends(get_db)
):
    service = ApprovalsService(db)
    return await service.get_all_history()


@router.get("/teamlead-history", response_model=HistoryListResponse)
async def get_team_lead_history(
    current_user: User = Depends(get_division_manager_user),
    db: Session = Depends(get_db)
):
    """Decisiones de los team leads de mi división"""
    service = ApprovalsService(db)
    return await service.get_team_lead_history(current_user)
