"""
IMOB CRM - Modelo Imobiliária
"""

from typing import Optional
from pydantic import BaseModel, field_validator

IMOBILIARIA_STATUSES = ["ativo", "bloqueado"]


def _check_estado(v: Optional[str]) -> Optional[str]:
    if v is None or v.strip() == "":
        return None
    v = v.strip().upper()
    if len(v) != 2 or not v.isalpha():
        raise ValueError(f"Estado inválido: {v} (use a sigla, ex: SP)")
    return v


def _check_status(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in IMOBILIARIA_STATUSES:
        raise ValueError(f"Status inválido: {v}. Válidos: {IMOBILIARIA_STATUSES}")
    return v


class ImobiliariaCreate(BaseModel):
    nome: str
    endereco: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[str] = None
    status: str = "ativo"

    @field_validator("nome")
    @classmethod
    def validate_nome(cls, v):
        if not v or not v.strip():
            raise ValueError("Nome da imobiliária é obrigatório!")
        return v.strip()

    @field_validator("estado")
    @classmethod
    def validate_estado(cls, v):
        return _check_estado(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class ImobiliariaUpdate(BaseModel):
    nome: Optional[str] = None
    endereco: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None

    @field_validator("estado")
    @classmethod
    def validate_estado(cls, v):
        return _check_estado(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)
