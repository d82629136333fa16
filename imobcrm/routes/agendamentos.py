"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Routes Agendamentos                                              ║
║                                                                              ║
║  Admin vê todos, consultor apenas os seus (scope_for).                       ║
║  Toda mudança de status passa por set_client_status: o cliente acompanha     ║
║  o status do agendamento.                                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from imobcrm.config import db, new_id, now_iso
from imobcrm.models import AgendamentoCreate, AgendamentoUpdate, ClienteStatus, StatusUpdate
from imobcrm.routes.auth import get_current_user, require_admin
from imobcrm.services.client_status import set_client_status, sync_client_status
from imobcrm.services.joins import lookup_by_id
from imobcrm.services.permissions import Caller, check_owner_or_admin, scope_for

logger = logging.getLogger("agendamentos")

router = APIRouter(prefix="/agendamentos", tags=["Agendamentos"])


async def find_visible_agendamento(caller: Caller, agendamento_id: str) -> dict:
    agendamento = await db.agendamentos.find_one({"id": agendamento_id, **scope_for(caller)}, {"_id": 0})
    if not agendamento:
        raise HTTPException(status_code=404, detail="Agendamento não encontrado")
    return agendamento


# ==================== ROUTES ====================

@router.get("")
async def list_agendamentos(caller: Caller = Depends(get_current_user)):
    agendamentos = await db.agendamentos.find(
        scope_for(caller),
        {"_id": 0}
    ).sort([("data_agendamento", -1), ("horario", 1)]).to_list(None)

    clientes = await lookup_by_id(db.clientes, [a.get("cliente_id") for a in agendamentos], ("nome", "telefone"))
    consultores = await lookup_by_id(db.consultores, [a.get("consultor_id") for a in agendamentos])
    imobiliarias = await lookup_by_id(db.imobiliarias, [a.get("imobiliaria_id") for a in agendamentos])

    for a in agendamentos:
        cliente = clientes.get(a.get("cliente_id"), {})
        a["cliente_nome"] = cliente.get("nome")
        a["cliente_telefone"] = cliente.get("telefone")
        a["consultor_nome"] = consultores.get(a.get("consultor_id"), {}).get("nome")
        a["imobiliaria_nome"] = imobiliarias.get(a.get("imobiliaria_id"), {}).get("nome")

    return agendamentos


@router.post("")
async def create_agendamento(data: AgendamentoCreate, caller: Caller = Depends(get_current_user)):
    if not data.cliente_id:
        raise HTTPException(status_code=400, detail="Cliente é obrigatório!")
    if not data.data_agendamento:
        raise HTTPException(status_code=400, detail="Data do agendamento é obrigatória!")

    consultor_id = data.consultor_id
    if not caller.is_admin:
        # consultor agenda para si mesmo
        consultor_id = consultor_id or caller.consultor_id
    check_owner_or_admin(caller, consultor_id)

    if not await db.clientes.find_one({"id": data.cliente_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=404, detail="Cliente não encontrado")

    doc = {
        "id": new_id(),
        **data.model_dump(),
        "consultor_id": consultor_id,
        "status": ClienteStatus.AGENDADO.value,
        "lembrado": False,
        "created_at": now_iso(),
    }
    await db.agendamentos.insert_one(doc)
    await set_client_status(data.cliente_id, ClienteStatus.AGENDADO.value, doc["id"])
    logger.info(f"Agendamento criado: {doc['id']} cliente={data.cliente_id} consultor={consultor_id}")

    return {"id": doc["id"], "message": "Agendamento criado com sucesso!"}


@router.put("/{agendamento_id}")
async def update_agendamento(
    agendamento_id: str,
    data: AgendamentoUpdate,
    caller: Caller = Depends(get_current_user)
):
    """Atualização parcial; com status, o cliente (novo ou anterior) acompanha."""
    atual = await find_visible_agendamento(caller, agendamento_id)

    update_data = data.model_dump(exclude_unset=True)
    status = update_data.pop("status", None)

    if "consultor_id" in update_data:
        check_owner_or_admin(caller, update_data["consultor_id"])
    if "data_agendamento" in update_data and not update_data["data_agendamento"]:
        raise HTTPException(status_code=400, detail="Data do agendamento é obrigatória!")

    if update_data:
        update_data["updated_at"] = now_iso()
        await db.agendamentos.update_one({"id": agendamento_id}, {"$set": update_data})

    cliente_anterior = atual.get("cliente_id")
    cliente_id = update_data.get("cliente_id") or cliente_anterior
    if status:
        await set_client_status(cliente_id, status, agendamento_id)
    elif {"data_agendamento", "horario", "cliente_id"} & update_data.keys():
        # data/horário podem ter mudado qual é o último agendamento
        await sync_client_status(cliente_id)
    if cliente_anterior and cliente_anterior != cliente_id:
        await sync_client_status(cliente_anterior)

    return {"id": agendamento_id, "message": "Agendamento e indicação atualizados com sucesso!"}


@router.put("/{agendamento_id}/status")
async def update_agendamento_status(
    agendamento_id: str,
    data: StatusUpdate,
    caller: Caller = Depends(get_current_user)
):
    if not data.status:
        raise HTTPException(status_code=400, detail="Status é obrigatório!")

    agendamento = await find_visible_agendamento(caller, agendamento_id)
    await set_client_status(agendamento.get("cliente_id"), data.status, agendamento_id)

    return {"message": "Status atualizado com sucesso em visita e indicação!"}


@router.put("/{agendamento_id}/lembrado")
async def marcar_lembrado(agendamento_id: str, caller: Caller = Depends(get_current_user)):
    await find_visible_agendamento(caller, agendamento_id)
    await db.agendamentos.update_one(
        {"id": agendamento_id},
        {"$set": {"lembrado": True, "updated_at": now_iso()}}
    )
    return {"message": "Cliente marcado como lembrado!"}


@router.delete("/{agendamento_id}")
async def delete_agendamento(agendamento_id: str, caller: Caller = Depends(require_admin)):
    agendamento = await db.agendamentos.find_one({"id": agendamento_id}, {"_id": 0, "cliente_id": 1})
    result = await db.agendamentos.delete_one({"id": agendamento_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Agendamento não encontrado")
    await sync_client_status((agendamento or {}).get("cliente_id"))

    logger.info(f"Agendamento removido: {agendamento_id} por {caller.id}")
    return {"message": "Agendamento removido com sucesso!"}
