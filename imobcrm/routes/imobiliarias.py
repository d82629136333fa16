"""
IMOB CRM - Routes Imobiliárias
Leitura para qualquer usuário autenticado, escrita apenas admin.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from imobcrm.config import db, new_id, now_iso
from imobcrm.models import ImobiliariaCreate, ImobiliariaUpdate
from imobcrm.routes.auth import get_current_user, require_admin
from imobcrm.services.permissions import Caller

logger = logging.getLogger("imobiliarias")

router = APIRouter(prefix="/imobiliarias", tags=["Imobiliárias"])


async def _distinct_sorted(field: str, query: dict) -> list:
    values = await db.imobiliarias.distinct(field, query)
    return sorted({v for v in values if v and str(v).strip()})


@router.get("")
async def list_imobiliarias(
    cidade: Optional[str] = None,
    estado: Optional[str] = None,
    caller: Caller = Depends(get_current_user)
):
    """
    Lista as imobiliárias por nome.
    - estado: sigla exata
    - cidade: trecho do nome, sem diferenciar maiúsculas
    """
    query = {}
    if estado:
        query["estado"] = estado.strip().upper()
    if cidade:
        query["cidade"] = {"$regex": re.escape(cidade.strip()), "$options": "i"}

    return await db.imobiliarias.find(query, {"_id": 0}).sort("nome", 1).to_list(None)


@router.get("/cidades")
async def list_cidades(estado: Optional[str] = None, caller: Caller = Depends(get_current_user)):
    query = {}
    if estado:
        query["estado"] = estado.strip().upper()
    return await _distinct_sorted("cidade", query)


@router.get("/estados")
async def list_estados(caller: Caller = Depends(get_current_user)):
    return await _distinct_sorted("estado", {})


@router.get("/{imobiliaria_id}")
async def get_imobiliaria(imobiliaria_id: str, caller: Caller = Depends(get_current_user)):
    imobiliaria = await db.imobiliarias.find_one({"id": imobiliaria_id}, {"_id": 0})
    if not imobiliaria:
        raise HTTPException(status_code=404, detail="Imobiliária não encontrada")
    return imobiliaria


@router.post("")
async def create_imobiliaria(data: ImobiliariaCreate, caller: Caller = Depends(require_admin)):
    doc = {
        "id": new_id(),
        **data.model_dump(),
        "created_at": now_iso(),
    }
    await db.imobiliarias.insert_one(doc)
    logger.info(f"Imobiliária criada: {doc['id']} ({doc['nome']})")

    return {"id": doc["id"], "message": "Imobiliária cadastrada com sucesso!"}


@router.put("/{imobiliaria_id}")
async def update_imobiliaria(
    imobiliaria_id: str,
    data: ImobiliariaUpdate,
    caller: Caller = Depends(require_admin)
):
    """Atualização parcial: só os campos enviados são alterados."""
    update_data = data.model_dump(exclude_unset=True)
    if "nome" in update_data and not (update_data["nome"] or "").strip():
        raise HTTPException(status_code=400, detail="Nome da imobiliária é obrigatório!")
    if not update_data:
        raise HTTPException(status_code=400, detail="Nenhum campo válido para atualizar.")

    update_data["updated_at"] = now_iso()
    result = await db.imobiliarias.update_one({"id": imobiliaria_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Imobiliária não encontrada")

    return {"id": imobiliaria_id, "message": "Imobiliária atualizada com sucesso!"}
