"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Models Package                                                   ║
║                                                                              ║
║  from imobcrm.models import ClienteCreate, AgendamentoUpdate, etc.           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from .auth import LoginRequest

from .imobiliaria import (
    IMOBILIARIA_STATUSES,
    ImobiliariaCreate,
    ImobiliariaUpdate,
)

from .consultor import (
    ConsultorCreate,
    ConsultorUpdate,
)

from .cliente import (
    ClienteStatus,
    VALID_CLIENTE_STATUSES,
    ClienteCreate,
    ClienteUpdate,
    StatusUpdate,
    LeadCadastro,
)

from .agendamento import (
    AgendamentoCreate,
    AgendamentoUpdate,
)

from .fechamento import (
    Aprovacao,
    FechamentoUpdate,
    parse_valor,
)

from .common import (
    clean_ref,
    cpf_digits,
    check_date,
    is_valid_email_format,
    is_valid_phone,
)

__all__ = [
    # Auth
    "LoginRequest",
    # Imobiliária
    "IMOBILIARIA_STATUSES",
    "ImobiliariaCreate",
    "ImobiliariaUpdate",
    # Consultor
    "ConsultorCreate",
    "ConsultorUpdate",
    # Cliente
    "ClienteStatus",
    "VALID_CLIENTE_STATUSES",
    "ClienteCreate",
    "ClienteUpdate",
    "StatusUpdate",
    "LeadCadastro",
    # Agendamento
    "AgendamentoCreate",
    "AgendamentoUpdate",
    # Fechamento
    "Aprovacao",
    "FechamentoUpdate",
    "parse_valor",
    # Validadores
    "clean_ref",
    "cpf_digits",
    "check_date",
    "is_valid_email_format",
    "is_valid_phone",
]
