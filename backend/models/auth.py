from pydantic import BaseModel, EmailStr
from typing import Optional
from enum import Enum


class UserRoleEnum(str, Enum):
    """
    Enum para roles de utilizador - garante type-safety e evita magic strings.
    Herda de str para ser serializável em JSON automaticamente.
    """
    INQUILINO = "inquilino"
    CORRETOR = "corretor"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, role: str) -> "UserRoleEnum":
        """Converte string para enum, com fallback para INQUILINO."""
        try:
            return cls(role.lower()) if role else cls.INQUILINO
        except ValueError:
            return cls.INQUILINO


class UserRole:
    """
    Helper para verificações de permissões.
    """
    INQUILINO = UserRoleEnum.INQUILINO.value
    CORRETOR = UserRoleEnum.CORRETOR.value
    ADMIN = UserRoleEnum.ADMIN.value

    ALL_ROLES = [e.value for e in UserRoleEnum]

    # Quem pode alterar imóveis, inquilinos e contratos
    STAFF_ROLES = [
        UserRoleEnum.CORRETOR.value,
        UserRoleEnum.ADMIN.value,
    ]

    @classmethod
    def is_valid_role(cls, role: str) -> bool:
        return role in cls.ALL_ROLES

    @classmethod
    def is_staff(cls, role: str) -> bool:
        return role in cls.STAFF_ROLES


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    is_active: Optional[bool] = True
    created_at: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
