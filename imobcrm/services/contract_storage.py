"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Contratos (GridFS)                                               ║
║                                                                              ║
║  - Chave de armazenamento gerada aqui, nunca o nome enviado pelo usuário     ║
║  - O nome original fica apenas como metadado de exibição                     ║
║  - Banco e storage não têm commit em duas fases:                             ║
║      stage_contract() envia o blob, o chamador grava a linha dentro do       ║
║      bloco; se a gravação falhar o blob é removido (desfazer best-effort)    ║
║  - Falha ao remover um blob é registrada em log, nunca propagada             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorGridFSBucket
from pymongo.errors import PyMongoError

from imobcrm.config import CONTRACT_BUCKET, db

logger = logging.getLogger("contract_storage")

PDF_MIME = "application/pdf"


class ContractStorageError(Exception):
    """Falha do object store"""
    pass


class ContractNotFound(ContractStorageError):
    """Nenhum blob com essa chave"""
    pass


def generate_storage_key() -> str:
    """contrato-<epoch ms>-<aleatório>.pdf"""
    return f"contrato-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}.pdf"


class ContractStorage:
    """Upload / download / remoção de blobs por chave num bucket GridFS."""

    def __init__(self, bucket_name: str = CONTRACT_BUCKET):
        self.bucket_name = bucket_name
        self._bucket: Optional[AsyncIOMotorGridFSBucket] = None

    @property
    def bucket(self) -> AsyncIOMotorGridFSBucket:
        if self._bucket is None:
            self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name=self.bucket_name)
        return self._bucket

    async def upload(self, key: str, data: bytes, content_type: str = PDF_MIME) -> None:
        try:
            await self.bucket.upload_from_stream(key, data, metadata={"contentType": content_type})
        except PyMongoError as e:
            raise ContractStorageError(f"Erro ao fazer upload do contrato: {e}") from e

    async def download(self, key: str) -> bytes:
        try:
            stream = await self.bucket.open_download_stream_by_name(key)
            return await stream.read()
        except NoFile as e:
            raise ContractNotFound(f"Arquivo não encontrado: {key}") from e
        except PyMongoError as e:
            raise ContractStorageError(f"Erro ao baixar arquivo: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            cursor = self.bucket.find({"filename": key})
            async for grid_file in cursor:
                await self.bucket.delete(grid_file._id)
        except PyMongoError as e:
            raise ContractStorageError(f"Erro ao remover arquivo: {e}") from e


storage = ContractStorage()


async def discard_contract(key: Optional[str]) -> bool:
    """
    Remoção best-effort. Retorna False (e loga) em caso de falha.
    """
    if not key:
        return True
    try:
        await storage.remove(key)
        logger.info(f"Contrato removido do storage: {key}")
        return True
    except ContractStorageError as e:
        logger.error(f"Erro ao remover arquivo do storage ({key}): {e}")
        return False


@asynccontextmanager
async def stage_contract(data: bytes, original_name: Optional[str]) -> AsyncIterator[Dict]:
    """
    Passo 1: envia o PDF e entrega os metadados do contrato.
    Passo 2 (chamador): insere o fechamento dentro do bloco.
    Exceção no bloco -> blob removido, exceção original propagada.

        async with stage_contract(content, file.filename) as contrato:
            await db.fechamentos.insert_one({..., **contrato})
    """
    key = generate_storage_key()
    await storage.upload(key, data, PDF_MIME)
    logger.info(f"Contrato enviado: {key} ({len(data)} bytes)")

    try:
        yield {
            "contrato_arquivo": key,
            "contrato_nome_original": original_name or "contrato.pdf",
            "contrato_tamanho": len(data),
        }
    except Exception:
        logger.warning(f"Falha após upload, desfazendo contrato {key}")
        await discard_contract(key)
        raise


async def download_contract(key: str) -> bytes:
    return await storage.download(key)
