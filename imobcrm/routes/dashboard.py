"""
IMOB CRM - Routes Dashboard
Métricas do dia / mês e ranking dos consultores (services/dashboard.py).
"""

from fastapi import APIRouter, Depends

from imobcrm.routes.auth import get_current_user
from imobcrm.services.dashboard import build_dashboard
from imobcrm.services.permissions import Caller

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard")
async def get_dashboard(caller: Caller = Depends(get_current_user)):
    return await build_dashboard(caller)
