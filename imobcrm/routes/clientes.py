"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Routes Clientes                                                  ║
║                                                                              ║
║  Admin vê todos. Consultor vê os atribuídos a ele OU ligados a ele por       ║
║  agendamento (client_scope).                                                 ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from imobcrm.config import db, new_id, now_iso
from imobcrm.models import ClienteCreate, ClienteStatus, ClienteUpdate, StatusUpdate, cpf_digits
from imobcrm.routes.auth import get_current_user
from imobcrm.services.client_status import latest_appointment_id, set_client_status
from imobcrm.services.joins import lookup_by_id
from imobcrm.services.permissions import Caller, check_owner_or_admin, client_scope

logger = logging.getLogger("clientes")

router = APIRouter(prefix="/clientes", tags=["Clientes"])


async def attach_consultor_names(docs: list) -> list:
    """Adiciona consultor_nome (join feito na aplicação)."""
    consultores = await lookup_by_id(db.consultores, [d.get("consultor_id") for d in docs])
    for d in docs:
        d["consultor_nome"] = consultores.get(d.get("consultor_id"), {}).get("nome")
    return docs


async def find_visible_cliente(caller: Caller, cliente_id: str) -> dict:
    query = {"id": cliente_id}
    scope = await client_scope(caller)
    if scope:
        query = {"$and": [query, scope]}
    cliente = await db.clientes.find_one(query, {"_id": 0})
    if not cliente:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return cliente


async def _check_cpf(cpf: Optional[str], exclude_id: Optional[str] = None) -> Optional[str]:
    digits = cpf_digits(cpf)
    if not digits:
        return None
    query = {"cpf": digits}
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    if await db.clientes.find_one(query, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Este CPF já está cadastrado!")
    return digits


# ==================== ROUTES ====================

@router.get("")
async def list_clientes(caller: Caller = Depends(get_current_user)):
    query = await client_scope(caller)
    clientes = await db.clientes.find(query, {"_id": 0}).sort("created_at", -1).to_list(None)
    return await attach_consultor_names(clientes)


@router.get("/{cliente_id}")
async def get_cliente(cliente_id: str, caller: Caller = Depends(get_current_user)):
    cliente = await find_visible_cliente(caller, cliente_id)
    return (await attach_consultor_names([cliente]))[0]


@router.post("")
async def create_cliente(data: ClienteCreate, caller: Caller = Depends(get_current_user)):
    if not data.nome or not data.nome.strip():
        raise HTTPException(status_code=400, detail="Nome do cliente é obrigatório!")

    if not caller.is_admin:
        # consultor cadastra para si mesmo
        data.consultor_id = data.consultor_id or caller.consultor_id
        check_owner_or_admin(caller, data.consultor_id)

    cpf = await _check_cpf(data.cpf)

    doc = {
        "id": new_id(),
        **data.model_dump(),
        "nome": data.nome.strip(),
        "cpf": cpf,
        "status": data.status or ClienteStatus.LEAD.value,
        "created_at": now_iso(),
    }
    await db.clientes.insert_one(doc)
    logger.info(f"Cliente criado: {doc['id']} por {caller.id}")

    return {"id": doc["id"], "message": "Cliente cadastrado com sucesso!"}


@router.put("/{cliente_id}")
async def update_cliente(cliente_id: str, data: ClienteUpdate, caller: Caller = Depends(get_current_user)):
    """
    Atualização parcial. consultor_id enviado vazio/nulo desassocia o cliente.
    Status enviado aqui segue o mesmo caminho de /status.
    """
    await find_visible_cliente(caller, cliente_id)

    update_data = data.model_dump(exclude_unset=True)
    status = update_data.pop("status", None)

    if "nome" in update_data and not (update_data["nome"] or "").strip():
        raise HTTPException(status_code=400, detail="Nome do cliente é obrigatório!")
    if "consultor_id" in update_data:
        check_owner_or_admin(caller, update_data["consultor_id"])
    if "cpf" in update_data:
        update_data["cpf"] = await _check_cpf(update_data["cpf"], exclude_id=cliente_id)

    if update_data:
        update_data["updated_at"] = now_iso()
        await db.clientes.update_one({"id": cliente_id}, {"$set": update_data})

    if status:
        await set_client_status(cliente_id, status, await latest_appointment_id(cliente_id))

    return {"id": cliente_id, "message": "Cliente atualizado com sucesso!"}


@router.put("/{cliente_id}/status")
async def update_cliente_status(cliente_id: str, data: StatusUpdate, caller: Caller = Depends(get_current_user)):
    if not data.status:
        raise HTTPException(status_code=400, detail="Status é obrigatório!")

    await find_visible_cliente(caller, cliente_id)
    await set_client_status(cliente_id, data.status, await latest_appointment_id(cliente_id))

    return {"message": "Status atualizado com sucesso!"}
