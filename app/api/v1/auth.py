# app/api/v1/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
import logging

from app.config.database import get_db
from app.core.auth.service import AuthService
from app.core.auth.rate_limit import login_rate_limiter
from app.core.auth.schemas import UserLogin, TokenResponse, UserResponse
from app.shared.database.models import User
from app.core.auth.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def check_login_rate_limit(request: Request):
    """Limitar intentos de login por IP del cliente"""
    client_ip = request.client.host if request.client else "unknown"
    if not login_rate_limiter.hit(client_ip):
        logger.warning(f"Login bloqueado por límite de intentos: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Demasiados intentos de login, intenta más tarde"
        )


def authenticate(db: Session, email: str, password: str) -> TokenResponse:
    user = db.query(User).filter(User.email == email.strip().lower()).first()

    if not user or not AuthService.verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo"
        )

    logger.info(f"Login de usuario {user.id} ({user.role})")
    return TokenResponse(
        access_token=AuthService.token_for_user(user),
        token_type="bearer",
        user=UserResponse.from_user(user)
    )


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(check_login_rate_limit)])
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Endpoint de login para obtener token de acceso

    **Parámetros:**
    - **username**: Email del usuario
    - **password**: Contraseña del usuario

    **Returns:**
    - Token de acceso JWT
    - Información del usuario
    """
    return authenticate(db, form_data.username, form_data.password)


@router.post("/login-json", response_model=TokenResponse, dependencies=[Depends(check_login_rate_limit)])
async def login_json(
    user_login: UserLogin,
    db: Session = Depends(get_db)
):
    """
    Endpoint de login alternativo que acepta JSON

    **Body:**
    ```json
        {
            "email": "agent@local",
            "password": "agent123"
        }
    ```
    """
    return authenticate(db, user_login.email, user_login.password)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Obtener información del usuario actual

    **Headers requeridos:**
    - Authorization: Bearer {token}
    """
    return UserResponse.from_user(current_user)
