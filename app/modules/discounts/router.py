# app/modules/discounts/router.py
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, Query, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import json

from app.config.database import get_db
from app.config.settings import settings
from app.core.auth.dependencies import get_current_user, get_submitter_user
from app.core.exceptions import ValidationFailed
from app.shared.database.models import User
from app.shared.schemas.common import PaginatedResponse
from app.shared.services.cloudinary_service import CloudinaryService, get_photo_uploader
from app.shared.services.notification_service import NotificationService, get_notifier
from .service import DiscountsService
from .schemas import DiscountRequestCreate, DiscountRequestResponse, DiscountRequestDetail, FormMetaResponse

router = APIRouter()


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return value


def parse_request_form(
    buyer_id: Optional[str],
    site_id: Optional[str],
    items: Optional[str],
    amount: Optional[str],
    article_id: Optional[str],
    quantity: Optional[str],
    invoice_ref: Optional[str],
    reason: Optional[str],
    idempotency_key: Optional[str]
) -> DiscountRequestCreate:
    """Convertir campos multipart en DiscountRequestCreate (errores → validation_error)"""
    lines = []
    items = _blank_to_none(items)
    if items is not None:
        try:
            lines = json.loads(items)
        except json.JSONDecodeError:
            raise ValidationFailed("items debe ser un JSON válido")
        if not isinstance(lines, list):
            raise ValidationFailed("items debe ser una lista")

    payload = {
        "buyer_id": _blank_to_none(buyer_id),
        "site_id": _blank_to_none(site_id),
        "items": lines,
        "amount": _blank_to_none(amount),
        "article_id": _blank_to_none(article_id),
        "invoice_ref": invoice_ref,
        "reason": reason,
        "idempotency_key": idempotency_key,
    }
    if _blank_to_none(quantity) is not None:
        payload["quantity"] = quantity

    try:
        return DiscountRequestCreate(**payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "request"
        raise ValidationFailed(f"{location}: {first.get('msg')}")


@router.post("", response_model=DiscountRequestResponse)
async def create_discount_request(
    background_tasks: BackgroundTasks,
    buyer_id: Optional[str] = Form(None, description="ID del comprador"),
    site_id: Optional[str] = Form(None, description="ID del objeto del comprador"),
    items: Optional[str] = Form(None, description="Líneas en JSON: [{article_id, quantity, discount_percent}]"),
    amount: Optional[str] = Form(None, description="Monto total (formato sin líneas)"),
    article_id: Optional[str] = Form(None),
    quantity: Optional[str] = Form(None),
    invoice_ref: Optional[str] = Form(None),
    reason: Optional[str] = Form(None),
    idempotency_key_form: Optional[str] = Form(None, alias="idempotency_key"),
    photos: Optional[List[UploadFile]] = File(None, description="Fotos de evidencia"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: User = Depends(get_submitter_user),
    uploader: CloudinaryService = Depends(get_photo_uploader),
    notifier: NotificationService = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """
    Crear solicitud de descuento

    **Proceso:**
    1. Validación del formulario (sin escrituras si falla)
    2. Precio de cada línea y total
    3. Nivel de aprobación según el total
    4. Responsable (solo nivel team lead)
    5. Commit único de solicitud, líneas, fotos y auditoría
    6. Notificación a aprobadores en segundo plano

    **Idempotencia:** header `Idempotency-Key` (8-128 caracteres). Reenviar la
    misma key devuelve la solicitud original con `idempotent: true`.
    """
    discount_data = parse_request_form(
        buyer_id, site_id, items, amount, article_id, quantity,
        invoice_ref, reason, idempotency_key or idempotency_key_form
    )

    photos = [photo for photo in (photos or []) if photo is not None and photo.filename]
    if len(photos) > settings.max_photos_per_request:
        raise ValidationFailed(f"Máximo {settings.max_photos_per_request} fotos por solicitud")

    service = DiscountsService(db)

    # Un reintento no vuelve a subir fotos
    replay = service.find_replay(current_user.id, discount_data.idempotency_key)
    if replay is not None:
        return replay

    photo_urls = await uploader.upload_request_photos(photos, current_user.id) if photos else []

    result = await service.create_discount_request(
        discount_data=discount_data,
        submitter=current_user,
        photo_urls=photo_urls
    )

    if not result.idempotent:
        background_tasks.add_task(notifier.notify_request_created, result.request_id)

    return result


@router.get("/my", response_model=PaginatedResponse)
async def get_my_discount_requests(
    status: Optional[str] = Query(None, description="pending | approved | rejected"),
    leader: Optional[str] = Query(None, description="Nivel requerido: team_lead | division_manager | sales_director"),
    on_date: Optional[date] = Query(None, alias="date"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    page: int = Query(1),
    per: int = Query(10),
    current_user: User = Depends(get_submitter_user),
    db: Session = Depends(get_db)
):
    """
    Mis solicitudes de descuento

    Filtros por estado, nivel requerido y fecha (día exacto o rango).
    Paginación: `page` desde 1, `per` entre 1 y 50.
    """
    service = DiscountsService(db)
    return await service.get_my_discount_requests(
        agent=current_user,
        status=status,
        required_role=leader,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per=per
    )


@router.get("/meta", response_model=FormMetaResponse)
async def get_form_meta(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Catálogos de compradores, objetos y artículos para el formulario"""
    service = DiscountsService(db)
    return await service.get_form_meta(current_user)


@router.get("/{request_id}", response_model=DiscountRequestDetail)
async def get_discount_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Detalle de la solicitud con líneas, decisiones y fotos"""
    service = DiscountsService(db)
    return await service.get_request_detail(request_id, current_user)


@router.get("/{request_id}/photos")
async def get_discount_request_photos(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = DiscountsService(db)
    photos = await service.get_request_photos(request_id, current_user)
    return {"request_id": request_id, "photos": photos}
