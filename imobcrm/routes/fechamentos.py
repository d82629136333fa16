"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Routes Fechamentos                                               ║
║                                                                              ║
║  - Criação em multipart/form-data com exatamente um contrato PDF             ║
║  - Toda validação acontece antes de qualquer escrita (storage ou banco)      ║
║  - Upload + insert via stage_contract: insert falhou -> blob removido        ║
║  - Aprovação / reprovação apenas admin                                       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from imobcrm.config import MAX_CONTRACT_SIZE, db, new_id, now_iso, today_str
from imobcrm.models import Aprovacao, ClienteStatus, FechamentoUpdate, check_date, clean_ref, parse_valor
from imobcrm.routes.auth import get_current_user, require_admin
from imobcrm.services.client_status import set_client_status
from imobcrm.services.contract_storage import (
    PDF_MIME,
    ContractNotFound,
    discard_contract,
    download_contract,
    stage_contract,
)
from imobcrm.services.joins import lookup_by_id
from imobcrm.services.permissions import Caller, check_owner_or_admin, scope_for

logger = logging.getLogger("fechamentos")

router = APIRouter(prefix="/fechamentos", tags=["Fechamentos"])


async def find_visible_fechamento(caller: Caller, fechamento_id: str) -> dict:
    fechamento = await db.fechamentos.find_one({"id": fechamento_id, **scope_for(caller)}, {"_id": 0})
    if not fechamento:
        raise HTTPException(status_code=404, detail="Fechamento não encontrado")
    return fechamento


async def read_contract(contrato: Optional[UploadFile]) -> bytes:
    """Lê o PDF enviado, rejeitando tipo ou tamanho inválido."""
    if contrato is None or not contrato.filename:
        raise HTTPException(status_code=400, detail="Contrato em PDF é obrigatório!")
    if contrato.content_type != PDF_MIME:
        raise HTTPException(status_code=400, detail="Apenas arquivos PDF são permitidos!")

    too_large = HTTPException(
        status_code=400,
        detail=f"Arquivo muito grande. Máximo: {MAX_CONTRACT_SIZE // 1024 // 1024} MB"
    )
    # tamanho declarado no multipart: recusa antes de ler
    if contrato.size is not None and contrato.size > MAX_CONTRACT_SIZE:
        raise too_large

    content = await contrato.read()
    if len(content) > MAX_CONTRACT_SIZE:
        raise too_large
    if not content:
        raise HTTPException(status_code=400, detail="Contrato em PDF é obrigatório!")
    return content


def content_disposition(filename: str, fallback: str) -> str:
    """
    attachment com o nome original. Nomes fora de ASCII vão em filename*
    (RFC 5987) com um filename ASCII de reserva.
    """
    filename = filename.replace('"', "")
    if filename.isascii():
        return f'attachment; filename="{filename}"'
    ascii_name = filename.encode("ascii", "ignore").decode().strip() or fallback
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


# ==================== ROUTES ====================

@router.get("")
async def list_fechamentos(caller: Caller = Depends(get_current_user)):
    fechamentos = await db.fechamentos.find(
        scope_for(caller),
        {"_id": 0}
    ).sort([("data_fechamento", -1), ("created_at", -1)]).to_list(None)

    clientes = await lookup_by_id(
        db.clientes, [f.get("cliente_id") for f in fechamentos], ("nome", "telefone", "cpf")
    )
    consultores = await lookup_by_id(db.consultores, [f.get("consultor_id") for f in fechamentos])
    imobiliarias = await lookup_by_id(db.imobiliarias, [f.get("imobiliaria_id") for f in fechamentos])

    for f in fechamentos:
        cliente = clientes.get(f.get("cliente_id"), {})
        f["cliente_nome"] = cliente.get("nome")
        f["cliente_telefone"] = cliente.get("telefone")
        f["cliente_cpf"] = cliente.get("cpf")
        f["consultor_nome"] = consultores.get(f.get("consultor_id"), {}).get("nome")
        f["imobiliaria_nome"] = imobiliarias.get(f.get("imobiliaria_id"), {}).get("nome")

    return fechamentos


@router.post("")
async def create_fechamento(
    cliente_id: str = Form(None),
    valor_fechado: str = Form(None),
    data_fechamento: str = Form(None),
    consultor_id: str = Form(None),
    imobiliaria_id: str = Form(None),
    agendamento_id: str = Form(None),
    tipo_servico: str = Form(None),
    observacoes: str = Form(None),
    contrato: UploadFile = File(None),
    caller: Caller = Depends(get_current_user)
):
    """
    Registra um negócio fechado com o contrato em PDF.
    O cliente (e o agendamento informado) passam a "fechado".
    """
    content = await read_contract(contrato)

    cliente_id = clean_ref(cliente_id)
    if not cliente_id:
        raise HTTPException(status_code=400, detail="Cliente é obrigatório!")

    try:
        valor = parse_valor(valor_fechado)
        data = check_date(data_fechamento) if data_fechamento and data_fechamento.strip() else today_str()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    consultor_id = clean_ref(consultor_id)
    if not caller.is_admin:
        # consultor registra para si mesmo
        consultor_id = consultor_id or caller.consultor_id
    check_owner_or_admin(caller, consultor_id)

    agendamento_id = clean_ref(agendamento_id)
    doc = {
        "id": new_id(),
        "cliente_id": cliente_id,
        "consultor_id": consultor_id,
        "imobiliaria_id": clean_ref(imobiliaria_id),
        "agendamento_id": agendamento_id,
        "valor_fechado": valor,
        "data_fechamento": data,
        "tipo_servico": tipo_servico or None,
        "observacoes": observacoes or None,
        "aprovado": Aprovacao.PENDENTE.value,
        "created_at": now_iso(),
    }

    async with stage_contract(content, contrato.filename) as meta:
        doc.update(meta)
        await db.fechamentos.insert_one(doc)

    await set_client_status(cliente_id, ClienteStatus.FECHADO.value, agendamento_id)
    logger.info(f"Fechamento criado: {doc['id']} cliente={cliente_id} valor={valor}")

    return {
        "id": doc["id"],
        "message": "Fechamento registrado com sucesso!",
        "contrato": doc["contrato_nome_original"],
    }


@router.put("/{fechamento_id}")
async def update_fechamento(
    fechamento_id: str,
    data: FechamentoUpdate,
    caller: Caller = Depends(get_current_user)
):
    await find_visible_fechamento(caller, fechamento_id)

    update_data = data.model_dump(exclude_unset=True)
    if "consultor_id" in update_data:
        check_owner_or_admin(caller, update_data["consultor_id"])
    if "cliente_id" in update_data and not update_data["cliente_id"]:
        raise HTTPException(status_code=400, detail="Cliente é obrigatório!")
    if "valor_fechado" in update_data and update_data["valor_fechado"] is None:
        raise HTTPException(status_code=400, detail="Valor do fechamento é obrigatório!")

    if update_data:
        update_data["updated_at"] = now_iso()
        await db.fechamentos.update_one({"id": fechamento_id}, {"$set": update_data})

    return {"id": fechamento_id, "message": "Fechamento atualizado com sucesso!"}


@router.delete("/{fechamento_id}")
async def delete_fechamento(fechamento_id: str, caller: Caller = Depends(get_current_user)):
    """Remove a linha e depois o contrato (falha no storage só gera log)."""
    fechamento = await find_visible_fechamento(caller, fechamento_id)

    await db.fechamentos.delete_one({"id": fechamento_id})
    await discard_contract(fechamento.get("contrato_arquivo"))
    logger.info(f"Fechamento removido: {fechamento_id} por {caller.id}")

    return {"message": "Fechamento removido com sucesso!"}


@router.get("/{fechamento_id}/contrato")
async def get_contrato(fechamento_id: str, caller: Caller = Depends(get_current_user)):
    fechamento = await find_visible_fechamento(caller, fechamento_id)

    key = fechamento.get("contrato_arquivo")
    if not key:
        raise HTTPException(status_code=404, detail="Contrato não encontrado")

    try:
        content = await download_contract(key)
    except ContractNotFound:
        logger.warning(f"Contrato {key} do fechamento {fechamento_id} ausente no storage")
        raise HTTPException(status_code=404, detail="Contrato não encontrado")

    return Response(
        content=content,
        media_type=PDF_MIME,
        headers={
            "Content-Disposition": content_disposition(fechamento.get("contrato_nome_original") or key, key)
        }
    )


async def _set_aprovacao(fechamento_id: str, aprovado: Aprovacao, caller: Caller) -> None:
    result = await db.fechamentos.update_one(
        {"id": fechamento_id},
        {"$set": {"aprovado": aprovado.value, "updated_at": now_iso()}}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Fechamento não encontrado")
    logger.info(f"Fechamento {fechamento_id} -> {aprovado.value} por {caller.id}")


@router.put("/{fechamento_id}/aprovar")
async def aprovar_fechamento(fechamento_id: str, caller: Caller = Depends(require_admin)):
    await _set_aprovacao(fechamento_id, Aprovacao.APROVADO, caller)
    return {"message": "Fechamento aprovado com sucesso!"}


@router.put("/{fechamento_id}/reprovar")
async def reprovar_fechamento(fechamento_id: str, caller: Caller = Depends(require_admin)):
    await _set_aprovacao(fechamento_id, Aprovacao.REPROVADO, caller)
    return {"message": "Fechamento reprovado!"}
