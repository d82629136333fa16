"""
IMOB CRM - API Backend

Inicia com:
    uvicorn imobcrm.server:app --host 0.0.0.0 --port 8001 --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from imobcrm import __version__
from imobcrm.config import CORS_ORIGINS, client, db
from imobcrm.services.contract_storage import ContractStorageError

# Configuração de logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("imobcrm")

app = FastAPI(
    title="IMOB CRM",
    description="CRM de consultores, clientes, visitas e fechamentos imobiliários",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ROUTES ====================

from imobcrm.routes import (  # noqa: E402
    agendamentos,
    auth,
    clientes,
    consultores,
    dashboard,
    fechamentos,
    imobiliarias,
    leads,
)

app.include_router(auth.router, prefix="/api")
app.include_router(imobiliarias.router, prefix="/api")
app.include_router(consultores.router, prefix="/api")
app.include_router(leads.router, prefix="/api")
app.include_router(clientes.router, prefix="/api")
app.include_router(agendamentos.router, prefix="/api")
app.include_router(fechamentos.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "IMOB CRM API",
        "version": __version__,
        "status": "running",
        "docs": "/docs"
    }


# ==================== ERROS ====================

def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Dados inválidos"
    message = str(errors[0].get("msg", "Dados inválidos"))
    return message.replace("Value error, ", "", 1)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})


@app.exception_handler(ContractStorageError)
async def storage_error_handler(request: Request, exc: ContractStorageError):
    logger.error(f"Erro no storage de contratos ({request.url.path}): {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Erro no banco ({request.url.path}): {exc}")
    return JSONResponse(status_code=500, content={"detail": f"Erro no banco de dados: {exc}"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Erro inesperado em {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Erro interno do servidor"})


# ==================== STARTUP ====================

@app.on_event("startup")
async def startup():
    logger.info(f"IMOB CRM v{__version__} iniciado")

    await db.usuarios.create_index("email")
    await db.usuarios.create_index("id")
    await db.consultores.create_index("email")
    await db.consultores.create_index("cpf")
    await db.consultores.create_index("id")
    await db.clientes.create_index("id")
    await db.clientes.create_index("cpf")
    await db.clientes.create_index("consultor_id")
    await db.agendamentos.create_index("id")
    await db.agendamentos.create_index("consultor_id")
    await db.agendamentos.create_index("cliente_id")
    await db.agendamentos.create_index("data_agendamento")
    await db.fechamentos.create_index("id")
    await db.fechamentos.create_index("consultor_id")
    await db.fechamentos.create_index("data_fechamento")
    await db.imobiliarias.create_index("id")

    logger.info("Índices MongoDB criados")


@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
