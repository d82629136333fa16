"""
Configuração e utilitários compartilhados
"""

import os
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import bcrypt
import pytz
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv

logger = logging.getLogger("config")

# Carregar .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'imobcrm')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# JWT
DEV_JWT_SECRET = 'imobcrm-dev-secret'
JWT_SECRET = os.environ.get('JWT_SECRET', DEV_JWT_SECRET)
JWT_ALGORITHM = 'HS256'
JWT_EXPIRES_HOURS = int(os.environ.get('JWT_EXPIRES_HOURS', '8'))

if JWT_SECRET == DEV_JWT_SECRET:
    logger.warning("JWT_SECRET não definido, usando segredo de desenvolvimento")

# Contratos (GridFS)
CONTRACT_BUCKET = os.environ.get('CONTRACT_BUCKET', 'contratos')
MAX_CONTRACT_SIZE = int(os.environ.get('MAX_CONTRACT_SIZE', str(10 * 1024 * 1024)))  # 10 MB

# Fuso usado para "hoje" no dashboard e datas padrão
APP_TIMEZONE = pytz.timezone(os.environ.get('APP_TIMEZONE', 'America/Sao_Paulo'))

CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """Hash bcrypt de uma senha"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: str) -> bool:
    """Compara uma senha com o hash armazenado"""
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # hash corrompido ou em formato desconhecido
        return False


def normalize_email(email: str) -> str:
    """Minúsculas e sem espaços nas pontas"""
    return (email or '').strip().lower()


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    """Data/hora atual em ISO (UTC)"""
    return datetime.now(timezone.utc).isoformat()


def local_now() -> datetime:
    return datetime.now(APP_TIMEZONE)


def today_str() -> str:
    """Data de hoje no formato da coluna de datas (YYYY-MM-DD)"""
    return local_now().strftime('%Y-%m-%d')
