from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from app.config.database import get_db
from app.shared.database.models import User
from app.shared.schemas.workflow import Role, APPROVER_ROLES
from app.core.auth.service import AuthService

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Obtener usuario actual desde el token"""

    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    user_id: int = payload.get("user_id")
    if user_id is None:
        raise AuthenticationError("Payload del token inválido")

    # Rol y división se leen de la BD, no del token
    user = db.query(User).filter(User.id == user_id).first()

    if user is None:
        raise AuthenticationError("Usuario no encontrado")

    if not user.is_active:
        raise AuthenticationError("Usuario inactivo")

    return user

def require_roles(allowed_roles: List[Role]):
    """Factory para crear dependency que requiere roles específicos"""
    allowed = {Role(r).value for r in allowed_roles}

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError(
                f"Rol '{current_user.role}' no autorizado. Roles permitidos: {sorted(allowed)}"
            )
        return current_user
    return role_checker

# Dependencies específicas por rol
def get_submitter_user(current_user: User = Depends(require_roles([Role.AGENT, Role.ADMIN]))):
    """Dependency para quienes crean solicitudes"""
    return current_user

def get_approver_user(current_user: User = Depends(require_roles(list(APPROVER_ROLES)))):
    """Dependency para aprobadores de cualquier nivel"""
    return current_user

def get_division_manager_user(current_user: User = Depends(require_roles([Role.DIVISION_MANAGER]))):
    return current_user

def get_sales_director_user(current_user: User = Depends(require_roles([Role.SALES_DIRECTOR]))):
    return current_user
