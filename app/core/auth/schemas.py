from pydantic import BaseModel, Field
from typing import Optional

class UserLogin(BaseModel):
    """Schema para login de usuario"""
    email: str = Field(..., description="Email del usuario")
    password: str = Field(..., min_length=1, description="Contraseña del usuario")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "agent@local",
                "password": "agent123"
            }
        }

class UserResponse(BaseModel):
    """Schema para respuesta de usuario"""
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    division_id: Optional[int] = None
    division_name: Optional[str] = None
    pda_number: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 5,
                "email": "agent@local",
                "first_name": "Agim",
                "last_name": "Agent",
                "role": "agent",
                "division_id": 1,
                "division_name": "Kozmetike",
                "pda_number": "PDA-123",
                "is_active": True
            }
        }

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            division_id=user.division_id,
            division_name=user.division.name if user.division else None,
            pda_number=user.pda_number,
            is_active=bool(user.is_active)
        )

class TokenResponse(BaseModel):
    """Schema para respuesta de token"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
