"""
Modelo de Inquilino

Um inquilino (ou comprador) pode ter vários contratos ao longo do tempo.
"""
import re
from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator


def validate_document(document: str) -> str:
    """CPF/CNPJ: guarda apenas os dígitos (11 ou 14)."""
    digits = re.sub(r'[^\d]', '', document)
    if len(digits) not in (11, 14):
        raise ValueError(f"Documento deve ter 11 (CPF) ou 14 (CNPJ) dígitos (recebido: {len(digits)})")
    return digits


class TenantCreate(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    document: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('document', mode='before')
    @classmethod
    def validate_document_field(cls, v):
        if v is None or v == '':
            return None
        return validate_document(v)


class TenantUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('document', mode='before')
    @classmethod
    def validate_document_field(cls, v):
        if v is None or v == '':
            return None
        return validate_document(v)


class Tenant(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    document: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
    updated_at: str
