"""
IMOB CRM - fixtures de teste

API em processo (httpx.AsyncClient + ASGITransport), banco em memória
(mongomock_motor) e storage de contratos em memória.
"""

import sys

import httpx
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from imobcrm.config import hash_password, new_id, now_iso
from imobcrm.routes.auth import create_access_token
from imobcrm.server import app
from imobcrm.services.contract_storage import ContractNotFound, ContractStorageError
from imobcrm.services.permissions import Caller, Role

PASSWORD = "ImobTest2026!"
PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


class FakeStorage:
    """Bucket de contratos em memória (mesma interface do ContractStorage)"""

    def __init__(self):
        self.files = {}
        self.fail_remove = False

    async def upload(self, key, data, content_type="application/pdf"):
        self.files[key] = data

    async def download(self, key):
        if key not in self.files:
            raise ContractNotFound(f"Arquivo não encontrado: {key}")
        return self.files[key]

    async def remove(self, key):
        if self.fail_remove:
            raise ContractStorageError("storage indisponível")
        self.files.pop(key, None)


@pytest.fixture
def mock_db(monkeypatch):
    """Troca o `db` de todos os módulos imobcrm.* por um banco em memória."""
    database = AsyncMongoMockClient()["imobcrm_test"]
    for name, module in list(sys.modules.items()):
        if name.startswith("imobcrm") and module is not None and hasattr(module, "db"):
            monkeypatch.setattr(module, "db", database)
    return database


@pytest.fixture
def storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr("imobcrm.services.contract_storage.storage", fake)
    return fake


@pytest_asyncio.fixture
async def api(mock_db, storage):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ==================== HELPERS ====================

def auth_headers(caller: Caller) -> dict:
    return {"Authorization": f"Bearer {create_access_token(caller)}"}


def admin_caller(consultor_id=None) -> Caller:
    return Caller(id="admin-1", nome="Admin", role=Role.ADMIN, consultor_id=consultor_id, email="admin@imob.com")


def consultor_caller(consultor_id: str, nome: str = "Consultor") -> Caller:
    return Caller(id=consultor_id, nome=nome, role=Role.CONSULTOR, consultor_id=consultor_id)


async def seed_consultor(database, nome="Consultor Teste", email=None, cpf=None) -> dict:
    doc = {
        "id": new_id(),
        "nome": nome,
        "telefone": "11999990000",
        "email": email or f"{new_id()[:8]}@imob.com",
        "senha": hash_password(PASSWORD),
        "cpf": cpf,
        "pix": "pix-chave",
        "tipo": "consultor",
        "ativo": True,
        "created_at": now_iso(),
    }
    await database.consultores.insert_one(dict(doc))
    return doc


async def seed_cliente(database, nome="Cliente Teste", consultor_id=None, status="lead") -> dict:
    doc = {
        "id": new_id(),
        "nome": nome,
        "telefone": "11988887777",
        "cpf": None,
        "status": status,
        "consultor_id": consultor_id,
        "created_at": now_iso(),
    }
    await database.clientes.insert_one(dict(doc))
    return doc


async def seed_agendamento(database, cliente_id, consultor_id=None, data="2024-03-10", horario="10:00") -> dict:
    doc = {
        "id": new_id(),
        "cliente_id": cliente_id,
        "consultor_id": consultor_id,
        "imobiliaria_id": None,
        "data_agendamento": data,
        "horario": horario,
        "status": "agendado",
        "lembrado": False,
        "created_at": now_iso(),
    }
    await database.agendamentos.insert_one(dict(doc))
    return doc
