"""
IMOB CRM - Fechamentos e contratos
Upload PDF validado antes de qualquer escrita; insert falhou -> blob removido.
"""

import io

import pytest
from fastapi import HTTPException, UploadFile
from pymongo.errors import PyMongoError
from starlette.datastructures import Headers

from imobcrm.config import MAX_CONTRACT_SIZE
from imobcrm.routes import fechamentos as fechamentos_routes
from imobcrm.routes.fechamentos import content_disposition, read_contract
from tests.conftest import (
    PDF_BYTES,
    admin_caller,
    auth_headers,
    consultor_caller,
    seed_agendamento,
    seed_cliente,
    seed_consultor,
)


def pdf(name="contrato.pdf", content=PDF_BYTES, mime="application/pdf"):
    return {"contrato": (name, content, mime)}


async def post_fechamento(api, caller, form, files=None):
    return await api.post(
        "/api/fechamentos",
        data=form,
        files=files if files is not None else pdf(),
        headers=auth_headers(caller),
    )


class FailingInsertCollection:
    def __init__(self, collection):
        self._collection = collection

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def insert_one(self, *args, **kwargs):
        raise PyMongoError("escrita recusada")


class FailingInsertDb:
    """Banco cujo insert em fechamentos falha"""

    def __init__(self, database):
        self._database = database

    def __getattr__(self, name):
        collection = getattr(self._database, name)
        if name == "fechamentos":
            return FailingInsertCollection(collection)
        return collection


class TestCriacao:

    @pytest.mark.asyncio
    async def test_creates_with_contract(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db, consultor_id="c1", status="agendado")
        agendamento = await seed_agendamento(mock_db, cliente["id"], consultor_id="c1")

        r = await post_fechamento(api, consultor_caller("c1"), {
            "cliente_id": cliente["id"],
            "agendamento_id": agendamento["id"],
            "valor_fechado": "1500,50",
            "data_fechamento": "2024-02-10",
        })
        assert r.status_code == 200, r.text
        assert r.json()["contrato"] == "contrato.pdf"

        stored = await mock_db.fechamentos.find_one({"id": r.json()["id"]})
        assert stored["valor_fechado"] == 1500.5
        assert stored["consultor_id"] == "c1"
        assert stored["aprovado"] == "pendente"
        assert stored["contrato_arquivo"].startswith("contrato-")
        assert stored["contrato_arquivo"].endswith(".pdf")
        assert stored["contrato_tamanho"] == len(PDF_BYTES)
        assert storage.files[stored["contrato_arquivo"]] == PDF_BYTES

        assert (await mock_db.clientes.find_one({"id": cliente["id"]}))["status"] == "fechado"
        assert (await mock_db.agendamentos.find_one({"id": agendamento["id"]}))["status"] == "fechado"

    @pytest.mark.asyncio
    async def test_deal_on_older_appointment_keeps_client_on_latest(self, api, mock_db):
        cliente = await seed_cliente(mock_db, status="agendado")
        antigo = await seed_agendamento(mock_db, cliente["id"], consultor_id="c1", data="2024-01-01")
        await seed_agendamento(mock_db, cliente["id"], consultor_id="c1", data="2024-06-01")

        r = await post_fechamento(api, admin_caller(), {
            "cliente_id": cliente["id"], "agendamento_id": antigo["id"], "valor_fechado": "100",
        })
        assert r.status_code == 200
        assert (await mock_db.agendamentos.find_one({"id": antigo["id"]}))["status"] == "fechado"
        assert (await mock_db.clientes.find_one({"id": cliente["id"]}))["status"] == "agendado"

    @pytest.mark.asyncio
    async def test_date_defaults_to_today(self, api, mock_db, monkeypatch):
        monkeypatch.setattr(fechamentos_routes, "today_str", lambda: "2024-05-05")
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        assert r.status_code == 200
        stored = await mock_db.fechamentos.find_one({"id": r.json()["id"]})
        assert stored["data_fechamento"] == "2024-05-05"

    @pytest.mark.asyncio
    async def test_non_pdf_rejected_before_any_write(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(
            api, admin_caller(),
            {"cliente_id": cliente["id"], "valor_fechado": "100"},
            files=pdf(name="foto.png", content=b"\x89PNG", mime="image/png"),
        )
        assert r.status_code == 400
        assert storage.files == {}
        assert await mock_db.fechamentos.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_contract_required(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"}, files={})
        assert r.status_code == 400
        assert r.json()["detail"] == "Contrato em PDF é obrigatório!"
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_oversized_rejected(self, api, mock_db, storage, monkeypatch):
        monkeypatch.setattr(fechamentos_routes, "MAX_CONTRACT_SIZE", 10)
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        assert r.status_code == 400
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_declared_size_rejected_before_reading(self):
        upload = UploadFile(
            file=io.BytesIO(b""),
            size=MAX_CONTRACT_SIZE + 1,
            filename="grande.pdf",
            headers=Headers({"content-type": "application/pdf"}),
        )
        with pytest.raises(HTTPException) as exc:
            await read_contract(upload)
        assert exc.value.status_code == 400
        assert exc.value.detail.startswith("Arquivo muito grande")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("form", [
        {"valor_fechado": "100"},
        {"cliente_id": "x", "valor_fechado": "abc"},
        {"cliente_id": "x", "valor_fechado": "-5"},
        {"cliente_id": "x"},
        {"cliente_id": "x", "valor_fechado": "10", "data_fechamento": "05/05/2024"},
    ])
    async def test_invalid_fields(self, api, storage, form):
        r = await post_fechamento(api, admin_caller(), form)
        assert r.status_code == 400
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_consultant_cannot_record_for_other(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, consultor_caller("c1"), {
            "cliente_id": cliente["id"], "valor_fechado": "100", "consultor_id": "c2",
        })
        assert r.status_code == 403
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_failed_insert_leaves_no_blob(self, api, mock_db, storage, monkeypatch):
        monkeypatch.setattr(fechamentos_routes, "db", FailingInsertDb(mock_db))
        cliente = await seed_cliente(mock_db)

        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})

        assert r.status_code == 500
        assert storage.files == {}
        assert await mock_db.fechamentos.count_documents({}) == 0
        assert (await mock_db.clientes.find_one({"id": cliente["id"]}))["status"] == "lead"


class TestListagem:

    @pytest.mark.asyncio
    async def test_scoped_and_enriched(self, api, mock_db):
        consultor = await seed_consultor(mock_db, nome="Nina")
        cliente = await seed_cliente(mock_db, nome="Otávio")
        for cid, valor in ((consultor["id"], "100"), ("outro", "200")):
            r = await post_fechamento(api, admin_caller(), {
                "cliente_id": cliente["id"], "consultor_id": cid, "valor_fechado": valor,
            })
            assert r.status_code == 200

        r = await api.get("/api/fechamentos", headers=auth_headers(consultor_caller(consultor["id"])))
        rows = r.json()
        assert len(rows) == 1
        assert rows[0]["cliente_nome"] == "Otávio"
        assert rows[0]["consultor_nome"] == "Nina"
        assert rows[0]["valor_fechado"] == 100

        r = await api.get("/api/fechamentos", headers=auth_headers(admin_caller()))
        assert len(r.json()) == 2


class TestContrato:

    @pytest.mark.asyncio
    async def test_download(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(
            api, admin_caller(),
            {"cliente_id": cliente["id"], "valor_fechado": "100"},
            files=pdf(name="escritura.pdf"),
        )
        fechamento_id = r.json()["id"]

        r = await api.get(f"/api/fechamentos/{fechamento_id}/contrato", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert r.content == PDF_BYTES
        assert r.headers["content-type"] == "application/pdf"
        assert r.headers["content-disposition"] == 'attachment; filename="escritura.pdf"'

    @pytest.mark.asyncio
    async def test_download_non_latin1_name(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(
            api, admin_caller(),
            {"cliente_id": cliente["id"], "valor_fechado": "100"},
            files=pdf(name="contrato 📄.pdf"),
        )
        assert r.status_code == 200

        r = await api.get(f"/api/fechamentos/{r.json()['id']}/contrato", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert r.content == PDF_BYTES
        assert "filename*=UTF-8''contrato%20%F0%9F%93%84.pdf" in r.headers["content-disposition"]

    def test_content_disposition(self):
        assert content_disposition("escritura.pdf", "k.pdf") == 'attachment; filename="escritura.pdf"'
        assert content_disposition("作品.pdf", "k.pdf") == (
            "attachment; filename=\".pdf\"; filename*=UTF-8''%E4%BD%9C%E5%93%81.pdf"
        )
        assert content_disposition("📄", "k.pdf") == (
            "attachment; filename=\"k.pdf\"; filename*=UTF-8''%F0%9F%93%84"
        )

    @pytest.mark.asyncio
    async def test_delete_then_download_404(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        fechamento_id = r.json()["id"]

        r = await api.delete(f"/api/fechamentos/{fechamento_id}", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert storage.files == {}

        r = await api.get(f"/api/fechamentos/{fechamento_id}/contrato", headers=auth_headers(admin_caller()))
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_survives_storage_failure(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        storage.fail_remove = True

        r = await api.delete(f"/api/fechamentos/{r.json()['id']}", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert await mock_db.fechamentos.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_missing_blob_404(self, api, mock_db, storage):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        storage.files.clear()

        r = await api.get(f"/api/fechamentos/{r.json()['id']}/contrato", headers=auth_headers(admin_caller()))
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_other_consultant_404(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, consultor_caller("c1"), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        r = await api.get(f"/api/fechamentos/{r.json()['id']}/contrato", headers=auth_headers(consultor_caller("c2")))
        assert r.status_code == 404


class TestAprovacao:

    @pytest.mark.asyncio
    async def test_approve_and_reject(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, admin_caller(), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        fechamento_id = r.json()["id"]

        r = await api.put(f"/api/fechamentos/{fechamento_id}/aprovar", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert (await mock_db.fechamentos.find_one({"id": fechamento_id}))["aprovado"] == "aprovado"

        r = await api.put(f"/api/fechamentos/{fechamento_id}/reprovar", headers=auth_headers(admin_caller()))
        assert r.status_code == 200
        assert (await mock_db.fechamentos.find_one({"id": fechamento_id}))["aprovado"] == "reprovado"

    @pytest.mark.asyncio
    async def test_admin_only(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, consultor_caller("c1"), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        r = await api.put(f"/api/fechamentos/{r.json()['id']}/aprovar", headers=auth_headers(consultor_caller("c1")))
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown(self, api):
        r = await api.put("/api/fechamentos/nao-existe/aprovar", headers=auth_headers(admin_caller()))
        assert r.status_code == 404


class TestAtualizacao:

    @pytest.mark.asyncio
    async def test_partial_json_update(self, api, mock_db):
        cliente = await seed_cliente(mock_db)
        r = await post_fechamento(api, consultor_caller("c1"), {"cliente_id": cliente["id"], "valor_fechado": "100"})
        fechamento_id = r.json()["id"]

        r = await api.put(
            f"/api/fechamentos/{fechamento_id}",
            json={"valor_fechado": "250,75", "imobiliaria_id": ""},
            headers=auth_headers(consultor_caller("c1")),
        )
        assert r.status_code == 200
        stored = await mock_db.fechamentos.find_one({"id": fechamento_id})
        assert stored["valor_fechado"] == 250.75
        assert stored["imobiliaria_id"] is None
        assert stored["cliente_id"] == cliente["id"]
