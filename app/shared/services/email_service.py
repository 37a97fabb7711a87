# app/shared/services/email_service.py

import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from typing import List, Optional
import logging

from app.config.settings import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Envío de correo por SMTP con la configuración de settings"""

    def __init__(self):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout
        self.from_email = settings.sender_address

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        cc_emails: Optional[List[str]] = None
    ) -> bool:
        """
        Enviar correo. Devuelve False si no se envió (SMTP sin configurar,
        sin destinatarios o error de transporte); nunca lanza.
        """
        to_emails = [e for e in to_emails if e]
        cc_emails = [e for e in (cc_emails or []) if e and e not in to_emails]

        if not settings.smtp_configured:
            logger.info(f"SMTP no configurado. Se enviaría: '{subject}' a {to_emails} cc {cc_emails}")
            return False

        if not to_emails:
            logger.warning(f"Correo '{subject}' sin destinatarios, no se envía")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = formataddr((settings.app_name, self.from_email))
            message["To"] = ", ".join(to_emails)
            if cc_emails:
                message["Cc"] = ", ".join(cc_emails)

            if text_content:
                message.attach(MIMEText(text_content, "plain", "utf-8"))
            message.attach(MIMEText(html_content, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, to_emails + cc_emails, message.as_string())

            logger.info(f"Correo '{subject}' enviado a {to_emails}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error enviando correo '{subject}': {str(e)}")
            return False
