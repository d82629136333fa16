"""
IMOB CRM - Routes Leads
- Cadastro público de leads (sem autenticação)
- Pool de novos leads (sem consultor) e ação de "pegar" lead
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from imobcrm.config import db, new_id, now_iso
from imobcrm.models import ClienteStatus, LeadCadastro, cpf_digits, is_valid_phone
from imobcrm.routes.auth import get_current_user
from imobcrm.services.permissions import Caller

logger = logging.getLogger("leads")

router = APIRouter(tags=["Leads"])


async def cpf_in_use(cpf: str) -> bool:
    return await db.clientes.find_one({"cpf": cpf_digits(cpf)}, {"_id": 0, "id": 1}) is not None


# ==================== CADASTRO PÚBLICO ====================

@router.post("/leads/cadastro")
async def cadastro_lead(data: LeadCadastro):
    if not data.nome or not data.telefone or not data.cpf:
        raise HTTPException(status_code=400, detail="Nome, telefone e CPF são obrigatórios!")

    nome = data.nome.strip()
    if len(nome) < 2:
        raise HTTPException(status_code=400, detail="Nome deve ter pelo menos 2 caracteres!")

    if not is_valid_phone(data.telefone):
        raise HTTPException(status_code=400, detail="Telefone inválido!")

    cpf = cpf_digits(data.cpf)
    if len(cpf) != 11:
        raise HTTPException(status_code=400, detail="CPF deve ter 11 dígitos!")

    if await cpf_in_use(cpf):
        raise HTTPException(status_code=400, detail="Este CPF já está cadastrado!")

    doc = {
        "id": new_id(),
        "nome": nome,
        "telefone": data.telefone.strip(),
        "cpf": cpf,
        "tipo_servico": data.tipo_servico or None,
        "status": ClienteStatus.LEAD.value,
        "observacoes": data.observacoes or None,
        "consultor_id": None,  # lead público entra no pool
        "created_at": now_iso(),
    }
    await db.clientes.insert_one(doc)
    logger.info(f"Lead público cadastrado: {doc['id']}")

    return {
        "id": doc["id"],
        "message": "Cadastro realizado com sucesso! Entraremos em contato em breve.",
        "nome": nome,
    }


# ==================== NOVOS LEADS ====================

@router.get("/novos-leads")
async def list_novos_leads(caller: Caller = Depends(get_current_user)):
    return await db.clientes.find(
        {"consultor_id": None},
        {"_id": 0}
    ).sort("created_at", -1).to_list(None)


@router.put("/novos-leads/{cliente_id}/pegar")
async def pegar_lead(cliente_id: str, caller: Caller = Depends(get_current_user)):
    """
    Atribui o lead ao consultor do token.
    Update condicional atômico (consultor_id ainda nulo): em duas tentativas
    simultâneas apenas uma vence.
    """
    if not caller.consultor_id:
        raise HTTPException(status_code=403, detail="Apenas consultores podem pegar leads")

    claimed = await db.clientes.find_one_and_update(
        {"id": cliente_id, "consultor_id": None},
        {"$set": {"consultor_id": caller.consultor_id, "updated_at": now_iso()}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )

    if not claimed:
        exists = await db.clientes.find_one({"id": cliente_id}, {"_id": 0, "id": 1})
        if not exists:
            raise HTTPException(status_code=404, detail="Lead não encontrado")
        logger.info(f"Lead {cliente_id} já atribuído, tentativa de {caller.consultor_id}")
        raise HTTPException(status_code=400, detail="Este lead já foi atribuído a outro consultor!")

    logger.info(f"Lead {cliente_id} atribuído a {caller.consultor_id}")
    return {"message": "Lead atribuído com sucesso!", "cliente": claimed}
