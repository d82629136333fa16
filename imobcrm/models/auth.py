"""
IMOB CRM - Modelos de autenticação
"""

from pydantic import AliasChoices, BaseModel, Field


class LoginRequest(BaseModel):
    email: str = ""
    senha: str = Field("", validation_alias=AliasChoices("senha", "password"))
