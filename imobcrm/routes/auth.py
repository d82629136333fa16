"""
IMOB CRM - Routes Auth
Login / Logout / Verify token. Tokens JWT sem estado (HS256).
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from imobcrm.config import (
    JWT_ALGORITHM,
    JWT_EXPIRES_HOURS,
    JWT_SECRET,
    db,
    normalize_email,
    now_iso,
    verify_password,
)
from imobcrm.models import LoginRequest
from imobcrm.services.permissions import Caller, Role

logger = logging.getLogger("auth")

router = APIRouter(tags=["Auth"])
security = HTTPBearer(auto_error=False)


# ==================== HELPERS ====================

def create_access_token(caller: Caller, expires_hours: int = JWT_EXPIRES_HOURS) -> str:
    payload = caller.to_claims()
    payload["exp"] = datetime.now(timezone.utc) + timedelta(hours=expires_hours)
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Caller:
    """Lança jwt.InvalidTokenError (inclui expirado) ou KeyError/ValueError se faltar claim."""
    claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    return Caller.from_claims(claims)


def _token_from_header(value: str) -> str:
    """Token de "<esquema> <token>", qualquer esquema"""
    parts = (value or "").split()
    return parts[1] if len(parts) == 2 else ""


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Caller:
    """
    Caller a partir do header Authorization.
    Sem token -> 401. Token inválido/expirado -> 403.
    """
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        token = _token_from_header(request.headers.get("authorization"))
    if not token:
        raise HTTPException(status_code=401, detail="Token de acesso requerido")

    try:
        return decode_access_token(token)
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.info(f"Token recusado: {e}")
        raise HTTPException(status_code=403, detail="Token inválido")


async def require_admin(caller: Caller = Depends(get_current_user)) -> Caller:
    if not caller.is_admin:
        logger.warning(f"[PERMISSION_DENIED] caller={caller.id} role={caller.role.value} admin required")
        raise HTTPException(status_code=403, detail="Acesso negado. Apenas administradores.")
    return caller


def _public_user(doc: dict) -> dict:
    user = {k: v for k, v in doc.items() if k not in ("senha", "_id")}
    return user


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: LoginRequest):
    """
    Login: primeiro admin (usuarios) por email, depois consultor por email.
    """
    email = normalize_email(data.email)
    if not email or not data.senha:
        raise HTTPException(status_code=400, detail="Email e senha são obrigatórios")

    usuario = None
    role = None

    if "@" in email:
        usuario = await db.usuarios.find_one({"email": email, "ativo": True}, {"_id": 0})
        if usuario:
            role = Role.ADMIN
        else:
            usuario = await db.consultores.find_one({"email": email}, {"_id": 0})
            if usuario:
                role = Role.CONSULTOR

    if not usuario or not verify_password(data.senha, usuario.get("senha")):
        logger.info(f"Login recusado para {email}")
        raise HTTPException(status_code=401, detail="Credenciais inválidas")

    if role == Role.CONSULTOR and usuario.get("ativo") is False:
        raise HTTPException(status_code=403, detail="Conta desativada")

    consultor_nome = None
    if role == Role.ADMIN:
        await db.usuarios.update_one({"id": usuario["id"]}, {"$set": {"ultimo_login": now_iso()}})
        if usuario.get("consultor_id"):
            consultor = await db.consultores.find_one({"id": usuario["consultor_id"]}, {"_id": 0, "nome": 1})
            consultor_nome = consultor.get("nome") if consultor else None
        caller = Caller(
            id=usuario["id"],
            nome=usuario.get("nome", ""),
            role=Role.ADMIN,
            consultor_id=usuario.get("consultor_id"),
            email=usuario.get("email"),
        )
    else:
        consultor_nome = usuario.get("nome")
        caller = Caller(
            id=usuario["id"],
            nome=usuario.get("nome", ""),
            role=Role.CONSULTOR,
            consultor_id=usuario["id"],
        )

    token = create_access_token(caller)
    logger.info(f"Login {role.value}: {caller.id}")

    return {
        "message": "Login realizado com sucesso",
        "token": token,
        "user": {
            **_public_user(usuario),
            "tipo": role.value,
            "consultor_nome": consultor_nome,
        },
    }


@router.post("/logout")
async def logout(caller: Caller = Depends(get_current_user)):
    # JWT sem estado: o cliente descarta o token
    return {"message": "Logout realizado com sucesso"}


@router.get("/verify-token")
async def verify_token(caller: Caller = Depends(get_current_user)):
    """Dados atualizados do usuário dono do token."""
    if caller.is_admin:
        usuario = await db.usuarios.find_one({"id": caller.id, "ativo": True}, {"_id": 0})
    else:
        usuario = await db.consultores.find_one({"id": caller.id}, {"_id": 0})
        if usuario and usuario.get("ativo") is False:
            usuario = None

    if not usuario:
        raise HTTPException(status_code=401, detail="Usuário não encontrado")

    consultor_nome = usuario.get("nome") if not caller.is_admin else None
    if caller.is_admin and usuario.get("consultor_id"):
        consultor = await db.consultores.find_one({"id": usuario["consultor_id"]}, {"_id": 0, "nome": 1})
        consultor_nome = consultor.get("nome") if consultor else None

    return {
        "usuario": {
            **_public_user(usuario),
            "tipo": caller.role.value,
            "consultor_nome": consultor_nome,
        }
    }
