"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Modelo Cliente / Lead                                            ║
║                                                                              ║
║  CICLO: lead → agendado → fechado  (ou nao_fechou)                           ║
║  consultor_id = None  →  lead no pool de "novos leads"                       ║
║  O status do cliente acompanha o do último agendamento                       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, field_validator

from .common import clean_ref


class ClienteStatus(str, Enum):
    LEAD = "lead"
    AGENDADO = "agendado"
    FECHADO = "fechado"
    NAO_FECHOU = "nao_fechou"


VALID_CLIENTE_STATUSES = [s.value for s in ClienteStatus]


def check_status(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if v not in VALID_CLIENTE_STATUSES:
        raise ValueError(f"Status inválido: {v}. Válidos: {VALID_CLIENTE_STATUSES}")
    return v


class ClienteCreate(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    cpf: Optional[str] = None
    tipo_servico: Optional[str] = None
    status: Optional[str] = None
    observacoes: Optional[str] = None
    consultor_id: Optional[str] = None

    @field_validator("consultor_id", mode="before")
    @classmethod
    def validate_consultor(cls, v):
        return clean_ref(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return check_status(v)


class ClienteUpdate(ClienteCreate):
    """Mesmos campos; só os enviados são gravados (exclude_unset)"""
    pass


class StatusUpdate(BaseModel):
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return check_status(v)


class LeadCadastro(BaseModel):
    """Cadastro público de lead"""
    nome: Optional[str] = None
    telefone: Optional[str] = None
    cpf: Optional[str] = None
    tipo_servico: Optional[str] = None
    observacoes: Optional[str] = None
