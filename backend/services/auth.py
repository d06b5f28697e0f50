"""
Autenticação dos utilizadores da imobiliária (inquilinos, corretores e
administradores). O hash da password nunca sai deste módulo.
"""
from datetime import datetime, timezone, timedelta
from typing import List
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
import bcrypt

from config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRATION_HOURS
from database import db
from models.auth import UserRole


security = HTTPBearer()

# Projecção usada em todas as leituras de utilizadores fora do login
PUBLIC_USER_PROJECTION = {"_id": 0, "password": 0}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))


def create_token(user: dict) -> str:
    payload = {
        "sub": user["id"],
        "email": user["email"],
        "role": user["role"],
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _ensure_active(user: dict):
    if not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="Conta desativada")


async def authenticate_user(email: str, password: str) -> dict:
    """
    Valida as credenciais e devolve o utilizador sem o hash da password.

    Raises:
        HTTPException 401: credenciais inválidas ou conta desativada
    """
    user = await db.users.find_one({"email": email.lower()}, {"_id": 0})
    if not user or not verify_password(password, user.pop("password", "")):
        raise HTTPException(status_code=401, detail="Credenciais inválidas")
    _ensure_active(user)
    return user


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expirado")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Token inválido")

    user = await db.users.find_one({"id": payload["sub"]}, PUBLIC_USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=401, detail="Utilizador não encontrado")
    _ensure_active(user)
    return user


def require_roles(allowed_roles: List[str]):
    async def role_checker(user: dict = Depends(get_current_user)):
        if user["role"] not in allowed_roles:
            raise HTTPException(status_code=403, detail="Permissão negada")
        return user
    return role_checker


# Corretores e administradores gerem imóveis, inquilinos e contratos
require_staff = require_roles(UserRole.STAFF_ROLES)
