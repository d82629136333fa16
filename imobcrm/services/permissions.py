"""
IMOB CRM - Permission System
Dois papéis: admin (vê tudo) e consultor (vê só o que é seu).
Toda filtragem por papel passa por scope_for / client_scope.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

from fastapi import Depends, HTTPException, Request

from imobcrm.config import db

logger = logging.getLogger("permissions")


class Role(str, Enum):
    ADMIN = "admin"
    CONSULTOR = "consultor"


@dataclass(frozen=True)
class Caller:
    """Identidade decodificada do token"""
    id: str
    nome: str
    role: Role
    consultor_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_claims(cls, claims: dict) -> "Caller":
        return cls(
            id=str(claims["id"]),
            nome=claims.get("nome") or "",
            role=Role(claims["tipo"]),
            consultor_id=claims.get("consultor_id"),
            email=claims.get("email"),
        )

    def to_claims(self) -> dict:
        return {
            "id": self.id,
            "nome": self.nome,
            "tipo": self.role.value,
            "consultor_id": self.consultor_id,
            "email": self.email,
        }


# ════════════════════════════════════════════════════════════════════════
# SCOPE
# ════════════════════════════════════════════════════════════════════════

def scope_for(caller: Caller, field: str = "consultor_id") -> dict:
    """
    Filtro Mongo do que o caller pode ver.
    admin -> {} (sem filtro)
    consultor -> {field: consultor_id}
    """
    if caller.is_admin:
        return {}
    return {field: caller.consultor_id}


async def appointment_client_ids(consultor_id: str) -> Set[str]:
    """Clientes alcançados pelos agendamentos de um consultor"""
    ids = await db.agendamentos.distinct("cliente_id", {"consultor_id": consultor_id})
    return {i for i in ids if i}


async def client_scope(caller: Caller) -> dict:
    """
    Filtro de clientes visíveis.
    Consultor: clientes atribuídos diretamente OU ligados por agendamento.
    """
    if caller.is_admin:
        return {}
    conditions = [{"consultor_id": caller.consultor_id}]
    linked = await appointment_client_ids(caller.consultor_id)
    if linked:
        conditions.append({"id": {"$in": sorted(linked)}})
    return {"$or": conditions}


async def visible_client_ids(caller: Caller) -> Optional[Set[str]]:
    """
    Conjunto de ids de clientes visíveis ao consultor.
    None para admin (todos os clientes).
    """
    if caller.is_admin:
        return None
    owned = await db.clientes.distinct("id", {"consultor_id": caller.consultor_id})
    linked = await appointment_client_ids(caller.consultor_id)
    return {i for i in owned if i} | linked


# ════════════════════════════════════════════════════════════════════════
# GUARDS
# ════════════════════════════════════════════════════════════════════════

def check_owner_or_admin(caller: Caller, consultor_id: Optional[str]) -> None:
    """Admin passa; consultor só passa para o próprio consultor_id."""
    if caller.is_admin:
        return
    if caller.role == Role.CONSULTOR and caller.consultor_id and str(consultor_id) == caller.consultor_id:
        return
    logger.warning(
        f"[PERMISSION_DENIED] caller={caller.id} role={caller.role.value} "
        f"consultor_id={consultor_id}"
    )
    raise HTTPException(status_code=403, detail="Acesso negado")


def require_owner_or_admin(param: str = "consultor_id"):
    """
    FastAPI dependency factory.
    O consultor_id vem do path (param) ou da query (?consultor_id=).
    Para ids que chegam no body, usar check_owner_or_admin no handler.
    """
    from imobcrm.routes.auth import get_current_user

    async def _check(request: Request, caller: Caller = Depends(get_current_user)) -> Caller:
        consultor_id = request.path_params.get(param) or request.query_params.get("consultor_id")
        check_owner_or_admin(caller, consultor_id)
        return caller

    return _check
