# app/shared/services/notification_service.py

from typing import Callable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.config.database import SessionLocal
from app.config.settings import settings
from app.shared.database.models import DiscountRequest, User
from app.shared.schemas.workflow import Role
from app.shared.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notificaciones por correo de solicitudes de descuento.

    Se ejecuta después del commit (BackgroundTasks) con su propia sesión.
    Cualquier error se registra y se descarta: la solicitud o decisión ya
    está confirmada y no depende del correo.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, mailer: Optional[EmailService] = None):
        self.session_factory = session_factory
        self.mailer = mailer or EmailService()

    def notify_request_created(self, request_id: int) -> bool:
        db = self.session_factory()
        try:
            discount_request = db.query(DiscountRequest).filter(DiscountRequest.id == request_id).first()
            if discount_request is None:
                logger.warning(f"Notificación: solicitud #{request_id} no existe")
                return False

            to_emails, cc_emails = self.new_request_recipients(db, discount_request)
            if not to_emails:
                logger.warning(
                    f"Solicitud #{request_id} ({discount_request.required_role}) sin aprobadores a quien notificar"
                )
                return False

            subject = f"Nueva solicitud de descuento #{request_id}"
            return self.mailer.send_email(
                to_emails=to_emails,
                cc_emails=cc_emails,
                subject=subject,
                html_content=self._request_html(discount_request, "Nueva solicitud pendiente de aprobación"),
                text_content=self._request_text(discount_request)
            )
        except Exception:
            logger.exception(f"Error notificando creación de solicitud #{request_id}")
            return False
        finally:
            db.close()

    def notify_decision(self, request_id: int, approver_id: int) -> bool:
        db = self.session_factory()
        try:
            discount_request = db.query(DiscountRequest).filter(DiscountRequest.id == request_id).first()
            approver = db.query(User).filter(User.id == approver_id).first()
            if discount_request is None or approver is None:
                logger.warning(f"Notificación: solicitud #{request_id} o aprobador {approver_id} no existe")
                return False

            to_emails, cc_emails = self.decision_recipients(discount_request, approver)
            subject = f"Solicitud de descuento #{request_id} {discount_request.status}"
            title = f"Solicitud {discount_request.status} por {approver.full_name} ({approver.role})"
            return self.mailer.send_email(
                to_emails=to_emails,
                cc_emails=cc_emails,
                subject=subject,
                html_content=self._request_html(discount_request, title),
                text_content=self._request_text(discount_request)
            )
        except Exception:
            logger.exception(f"Error notificando decisión de solicitud #{request_id}")
            return False
        finally:
            db.close()

    # ==================== DESTINATARIOS ====================

    def new_request_recipients(self, db: Session, discount_request: DiscountRequest) -> Tuple[List[str], List[str]]:
        """Aprobadores del nivel requerido; el agente va en copia"""
        from app.modules.discounts.assignment_service import effective_assignee_id

        role = discount_request.required_role
        if role == Role.TEAM_LEAD.value:
            assignee_id = effective_assignee_id(db, discount_request)
            approvers = [] if assignee_id is None else db.query(User).filter(User.id == assignee_id).all()
        elif role == Role.DIVISION_MANAGER.value:
            approvers = [] if discount_request.division_id is None else db.query(User).filter(
                User.role == Role.DIVISION_MANAGER.value,
                User.division_id == discount_request.division_id,
                User.is_active == True
            ).order_by(User.id).all()
        else:
            approvers = db.query(User).filter(
                User.role == Role.SALES_DIRECTOR.value,
                User.is_active == True
            ).order_by(User.id).all()

        to_emails = [user.email for user in approvers if user.email]
        cc_emails = [discount_request.agent.email] if discount_request.agent else []
        return to_emails, cc_emails

    def decision_recipients(self, discount_request: DiscountRequest, approver: User) -> Tuple[List[str], List[str]]:
        """Buzón de aprobaciones finales; agente y aprobador en copia"""
        agent_email = discount_request.agent.email if discount_request.agent else None
        cc_emails = [e for e in (agent_email, approver.email) if e]
        if settings.final_approval_email:
            return [settings.final_approval_email], cc_emails
        # Sin buzón configurado el agente pasa a destinatario principal
        return cc_emails[:1], cc_emails[1:]

    # ==================== CONTENIDO ====================

    def _request_text(self, discount_request: DiscountRequest) -> str:
        buyer = discount_request.buyer
        return (
            f"Solicitud #{discount_request.id}\n"
            f"Comprador: {buyer.code + ' ' + buyer.name if buyer else '-'}\n"
            f"Monto: {discount_request.amount}\n"
            f"Nivel: {discount_request.required_role}\n"
            f"Estado: {discount_request.status}\n"
            f"Factura: {discount_request.invoice_ref or '-'}\n"
            f"Motivo: {discount_request.reason or '-'}\n"
            f"{settings.app_url}/requests/{discount_request.id}"
        )

    def _request_html(self, discount_request: DiscountRequest, title: str) -> str:
        agent = discount_request.agent
        buyer = discount_request.buyer
        return f"""
        <html>
        <body style="font-family: Arial, sans-serif;">
            <h2>{title}</h2>
            <table>
                <tr><td><b>Solicitud</b></td><td>#{discount_request.id}</td></tr>
                <tr><td><b>Agente</b></td><td>{agent.full_name if agent else '-'}</td></tr>
                <tr><td><b>Comprador</b></td><td>{buyer.name if buyer else '-'}</td></tr>
                <tr><td><b>Monto</b></td><td>{discount_request.amount}</td></tr>
                <tr><td><b>Nivel</b></td><td>{discount_request.required_role}</td></tr>
                <tr><td><b>Estado</b></td><td>{discount_request.status}</td></tr>
                <tr><td><b>Motivo</b></td><td>{discount_request.reason or '-'}</td></tr>
            </table>
            <p><a href="{settings.app_url}/requests/{discount_request.id}">Ver solicitud</a></p>
        </body>
        </html>
        """


notification_service = NotificationService()


def get_notifier() -> NotificationService:
    """Dependency del notificador (reemplazable en tests)"""
    return notification_service
