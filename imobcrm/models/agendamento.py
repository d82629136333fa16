"""
IMOB CRM - Modelo Agendamento (visita)
"""

from typing import Optional
from pydantic import BaseModel, field_validator

from .common import clean_ref, check_date, check_time
from .cliente import check_status


class AgendamentoCreate(BaseModel):
    cliente_id: Optional[str] = None
    consultor_id: Optional[str] = None
    imobiliaria_id: Optional[str] = None
    data_agendamento: Optional[str] = None
    horario: Optional[str] = None
    observacoes: Optional[str] = None

    @field_validator("cliente_id", "consultor_id", "imobiliaria_id", mode="before")
    @classmethod
    def validate_refs(cls, v):
        return clean_ref(v)

    @field_validator("data_agendamento")
    @classmethod
    def validate_data(cls, v):
        return check_date(v)

    @field_validator("horario")
    @classmethod
    def validate_horario(cls, v):
        return check_time(v)


class AgendamentoUpdate(AgendamentoCreate):
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return check_status(v)
