# app/core/exceptions.py
"""
Errores tipados del flujo de aprobación.

Cada error lleva un código de motivo estable (``not_found``,
``already_decided``, ``wrong_role``, ``forbidden``...) que viaja al cliente en
``detail.error`` para distinguir "enviaste algo mal" de "alguien ya actuó".
"""

from fastapi import HTTPException, status


class WorkflowError(HTTPException):
    """Base de los errores del flujo"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "workflow_error"

    def __init__(self, message: str = "", code: str = None):
        self.code = code or self.code
        self.message = message or self.code
        super().__init__(
            status_code=self.status_code,
            detail={"error": self.code, "message": self.message}
        )


class ValidationFailed(WorkflowError):
    """Error corregible por el cliente; no se escribió nada"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class WrongRoleError(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "wrong_role"


class ForbiddenError(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class AlreadyDecidedError(WorkflowError):
    """La solicitud ya salió de pending"""
    status_code = status.HTTP_409_CONFLICT
    code = "already_decided"
