"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Routes Consultores                                               ║
║                                                                              ║
║  - Email sempre normalizado (minúsculas, sem espaços) e único                ║
║  - CPF único quando informado                                                ║
║  - Senha sempre gravada como hash bcrypt, nunca devolvida                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from imobcrm.config import db, hash_password, new_id, normalize_email, now_iso
from imobcrm.models import ConsultorCreate, ConsultorUpdate, cpf_digits, is_valid_email_format
from imobcrm.routes.auth import get_current_user, require_admin
from imobcrm.services.permissions import Caller, require_owner_or_admin

logger = logging.getLogger("consultores")

router = APIRouter(prefix="/consultores", tags=["Consultores"])

NO_SECRET = {"_id": 0, "senha": 0}


# ==================== HELPERS ====================

async def email_in_use(email: str, exclude_id: Optional[str] = None) -> bool:
    query = {"email": normalize_email(email)}
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    return await db.consultores.find_one(query, {"_id": 0, "id": 1}) is not None


async def cpf_in_use(cpf: str, exclude_id: Optional[str] = None) -> bool:
    query = {"cpf": cpf_digits(cpf)}
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    return await db.consultores.find_one(query, {"_id": 0, "id": 1}) is not None


def _blank(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ""


async def _insert_consultor(data: ConsultorCreate) -> dict:
    doc = {
        "id": new_id(),
        "nome": (data.nome or "").strip(),
        "telefone": data.telefone,
        "email": normalize_email(data.email),
        "senha": hash_password(data.senha),
        "cpf": cpf_digits(data.cpf) or None,
        "pix": data.pix,
        "tipo": "consultor",
        "ativo": True,
        "created_at": now_iso(),
    }
    await db.consultores.insert_one(doc)
    logger.info(f"Consultor cadastrado: {doc['id']}")
    return doc


# ==================== ROUTES ====================

@router.get("")
async def list_consultores(caller: Caller = Depends(get_current_user)):
    return await db.consultores.find({}, NO_SECRET).sort("nome", 1).to_list(None)


@router.post("/cadastro")
async def cadastro_publico(data: ConsultorCreate):
    """Auto-cadastro público (sem autenticação)."""
    if any(_blank(v) for v in (data.nome, data.telefone, data.email, data.senha, data.cpf, data.pix)):
        raise HTTPException(status_code=400, detail="Todos os campos são obrigatórios!")

    if not is_valid_email_format(data.email):
        raise HTTPException(status_code=400, detail="Email inválido!")

    if await email_in_use(data.email):
        raise HTTPException(status_code=400, detail="Este email já está cadastrado!")

    if await cpf_in_use(data.cpf):
        raise HTTPException(status_code=400, detail="Este CPF já está cadastrado!")

    doc = await _insert_consultor(data)
    return {
        "id": doc["id"],
        "message": "Consultor cadastrado com sucesso! Agora você pode fazer login.",
        "email": doc["email"],
    }


@router.post("")
async def create_consultor(data: ConsultorCreate, caller: Caller = Depends(require_admin)):
    if _blank(data.senha):
        raise HTTPException(status_code=400, detail="Senha é obrigatória!")
    if _blank(data.email):
        raise HTTPException(status_code=400, detail="Email é obrigatório!")
    if not is_valid_email_format(data.email):
        raise HTTPException(status_code=400, detail="Email inválido!")

    if await email_in_use(data.email):
        raise HTTPException(status_code=400, detail="Este email já está cadastrado!")
    if not _blank(data.cpf) and await cpf_in_use(data.cpf):
        raise HTTPException(status_code=400, detail="Este CPF já está cadastrado!")

    doc = await _insert_consultor(data)
    return {"id": doc["id"], "message": "Consultor cadastrado com sucesso!", "email": doc["email"]}


@router.get("/{consultor_id}")
async def get_consultor(consultor_id: str, caller: Caller = Depends(require_owner_or_admin("consultor_id"))):
    """Admin ou o próprio consultor. O hash nunca sai; tem_senha indica se existe."""
    consultor = await db.consultores.find_one({"id": consultor_id}, {"_id": 0})
    if not consultor:
        raise HTTPException(status_code=404, detail="Consultor não encontrado")

    consultor["tem_senha"] = bool(consultor.pop("senha", None))
    return consultor


@router.put("/{consultor_id}")
async def update_consultor(
    consultor_id: str,
    data: ConsultorUpdate,
    caller: Caller = Depends(require_admin)
):
    existing = await db.consultores.find_one({"id": consultor_id}, {"_id": 0, "id": 1})
    if not existing:
        raise HTTPException(status_code=404, detail="Consultor não encontrado")

    sent = data.model_dump(exclude_unset=True)
    update_data = {k: sent[k] for k in ("nome", "telefone", "pix") if k in sent}

    if not _blank(data.email):
        if not is_valid_email_format(data.email):
            raise HTTPException(status_code=400, detail="Email inválido!")
        if await email_in_use(data.email, exclude_id=consultor_id):
            raise HTTPException(status_code=400, detail="Este email já está sendo usado por outro consultor!")
        update_data["email"] = normalize_email(data.email)

    if not _blank(data.cpf):
        if await cpf_in_use(data.cpf, exclude_id=consultor_id):
            raise HTTPException(status_code=400, detail="Este CPF já está sendo usado por outro consultor!")
        update_data["cpf"] = cpf_digits(data.cpf)

    if not _blank(data.senha):
        update_data["senha"] = hash_password(data.senha)

    if update_data:
        update_data["updated_at"] = now_iso()
        await db.consultores.update_one({"id": consultor_id}, {"$set": update_data})

    return {
        "id": consultor_id,
        "message": "Consultor atualizado com sucesso!",
        "email": update_data.get("email"),
    }
