"""
IMOB CRM - Modelo Fechamento (negócio fechado)
A criação chega em multipart/form-data (contrato PDF), ver routes/fechamentos.py.
"""

import math
from enum import Enum
from typing import Optional
from pydantic import BaseModel, field_validator

from .common import clean_ref, check_date


class Aprovacao(str, Enum):
    PENDENTE = "pendente"
    APROVADO = "aprovado"
    REPROVADO = "reprovado"


def parse_valor(value) -> float:
    """Converte o valor fechado ("1500,50", "1500.5", 1500) para float >= 0"""
    if value is None or str(value).strip() == "":
        raise ValueError("Valor do fechamento é obrigatório!")
    text = str(value).strip().replace(",", ".")
    try:
        valor = float(text)
    except ValueError:
        raise ValueError(f"Valor inválido: {value}")
    if not math.isfinite(valor) or valor < 0:
        raise ValueError(f"Valor inválido: {value}")
    return valor


class FechamentoUpdate(BaseModel):
    cliente_id: Optional[str] = None
    consultor_id: Optional[str] = None
    imobiliaria_id: Optional[str] = None
    agendamento_id: Optional[str] = None
    valor_fechado: Optional[float] = None
    data_fechamento: Optional[str] = None
    tipo_servico: Optional[str] = None
    observacoes: Optional[str] = None

    @field_validator("cliente_id", "consultor_id", "imobiliaria_id", "agendamento_id", mode="before")
    @classmethod
    def validate_refs(cls, v):
        return clean_ref(v)

    @field_validator("valor_fechado", mode="before")
    @classmethod
    def validate_valor(cls, v):
        if v is None:
            return None
        return parse_valor(v)

    @field_validator("data_fechamento")
    @classmethod
    def validate_data(cls, v):
        return check_date(v)
