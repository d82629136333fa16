"""
IMOB CRM - Validadores compartilhados pelos modelos
"""

import re
from datetime import datetime
from typing import Any, Optional

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^[()\-+\d]{10,15}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$')


def clean_ref(value: Any) -> Optional[str]:
    """
    Normaliza uma referência a outra entidade.
    "" / "  " / None viram None (associação nula), o resto vira str.
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_valid_email_format(email: str) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_phone(phone: str) -> bool:
    """Formato básico: 10 a 15 caracteres entre dígitos, ( ) - +"""
    if not phone:
        return False
    return bool(PHONE_PATTERN.match(re.sub(r'\s', '', phone)))


def cpf_digits(cpf: str) -> str:
    return re.sub(r'\D', '', cpf or '')


def check_date(value: Optional[str]) -> Optional[str]:
    """Aceita apenas YYYY-MM-DD (None passa)"""
    if value is None:
        return None
    value = value.strip()
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise ValueError(f"Data inválida: {value} (formato YYYY-MM-DD)")
    return value


def check_time(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() == '':
        return None
    value = value.strip()
    if not TIME_PATTERN.match(value):
        raise ValueError(f"Horário inválido: {value} (formato HH:MM)")
    return value
