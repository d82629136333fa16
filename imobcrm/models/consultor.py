"""
IMOB CRM - Modelos Consultor
A presença dos campos é verificada nas rotas (cadastro pelo admin e
auto-cadastro público exigem campos diferentes).
"""

from typing import Optional
from pydantic import BaseModel


class ConsultorCreate(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[str] = None
    senha: Optional[str] = None
    cpf: Optional[str] = None
    pix: Optional[str] = None


class ConsultorUpdate(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[str] = None
    senha: Optional[str] = None
    cpf: Optional[str] = None
    pix: Optional[str] = None
