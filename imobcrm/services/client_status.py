"""
IMOB CRM - Status do cliente

O status do cliente acompanha o do seu agendamento MAIS RECENTE. Não há
restrição no banco: toda escrita de status passa por este módulo,
chamado pelas rotas de agendamento, de cliente e de fechamento.
"""

import logging
from typing import Optional

from imobcrm.config import db, now_iso

logger = logging.getLogger("client_status")


async def latest_appointment(cliente_id: str) -> Optional[dict]:
    """Agendamento mais recente do cliente (data, horário, criação)"""
    docs = await db.agendamentos.find(
        {"cliente_id": cliente_id},
        {"_id": 0, "id": 1, "status": 1}
    ).sort([("data_agendamento", -1), ("horario", -1), ("created_at", -1)]).to_list(1)
    return docs[0] if docs else None


async def latest_appointment_id(cliente_id: str) -> Optional[str]:
    latest = await latest_appointment(cliente_id)
    return latest["id"] if latest else None


async def _write_client_status(cliente_id: str, status: str, updated_at: str) -> None:
    await db.clientes.update_one(
        {"id": cliente_id},
        {"$set": {"status": status, "updated_at": updated_at}}
    )


async def sync_client_status(cliente_id: Optional[str]) -> None:
    """Recalcula o status do cliente a partir do último agendamento (sem agendamento, nada muda)."""
    if not cliente_id:
        return
    latest = await latest_appointment(cliente_id)
    if latest and latest.get("status"):
        await _write_client_status(cliente_id, latest["status"], now_iso())
        logger.info(f"Cliente {cliente_id} sincronizado -> {latest['status']} (agendamento={latest['id']})")


async def set_client_status(cliente_id: Optional[str], status: str, agendamento_id: Optional[str] = None) -> None:
    """
    Grava o status no agendamento informado e, no cliente, só quando esse
    agendamento é o mais recente; senão o cliente segue o último agendamento.
    Sem agendamento informado o status vai direto para o cliente.
    """
    updated_at = now_iso()

    if agendamento_id:
        await db.agendamentos.update_one(
            {"id": agendamento_id},
            {"$set": {"status": status, "updated_at": updated_at}}
        )

    if not cliente_id:
        return

    if agendamento_id and agendamento_id != await latest_appointment_id(cliente_id):
        await sync_client_status(cliente_id)
        return

    await _write_client_status(cliente_id, status, updated_at)
    logger.info(f"Cliente {cliente_id} -> {status} (agendamento={agendamento_id})")
