"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  IMOB CRM - Dashboard                                                        ║
║                                                                              ║
║  Agregação feita em memória a partir das linhas brutas:                      ║
║  - agendamentos / lembrados de hoje                                          ║
║  - clientes visíveis (consultor: próprios + ligados por agendamento)         ║
║  - fechamentos de hoje, do mês (valor total, ticket médio)                   ║
║  - ranking por consultor (fechamentos do ANO corrente)                       ║
║                                                                              ║
║  Qualquer falha de consulta aborta tudo (sem resultado parcial).             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from imobcrm.config import APP_TIMEZONE, db, local_now
from imobcrm.services.permissions import Caller, scope_for, visible_client_ids

logger = logging.getLogger("dashboard")


# ════════════════════════════════════════════════════════════════════════════
# CÁLCULOS (puros)
# ════════════════════════════════════════════════════════════════════════════

def parse_closing_date(value) -> Optional[datetime]:
    """
    Data de fechamento fixada ao meio-dia no fuso da aplicação, para que
    a conversão de fuso nunca empurre a data para o dia/mês vizinho.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        try:
            day = datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
        except ValueError:
            logger.warning(f"Data de fechamento ilegível ignorada: {value!r}")
            return None
    return APP_TIMEZONE.localize(datetime(day.year, day.month, day.day, 12, 0, 0))


def to_amount(value) -> float:
    """valor_fechado ausente/ilegível conta como 0"""
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def deals_on(deals: Iterable[dict], day: str) -> List[dict]:
    return [f for f in deals if f.get("data_fechamento") == day]


def deals_in_month(deals: Iterable[dict], year: int, month: int) -> List[dict]:
    result = []
    for f in deals:
        closed = parse_closing_date(f.get("data_fechamento"))
        if closed and closed.year == year and closed.month == month:
            result.append(f)
    return result


def deals_in_year(deals: Iterable[dict], year: int) -> List[dict]:
    result = []
    for f in deals:
        closed = parse_closing_date(f.get("data_fechamento"))
        if closed and closed.year == year:
            result.append(f)
    return result


def total_amount(deals: Iterable[dict]) -> float:
    return sum(to_amount(f.get("valor_fechado")) for f in deals)


def average_ticket(total: float, count: int) -> float:
    """Ticket médio; 0 quando não há fechamentos"""
    if count <= 0:
        return 0
    return total / count


def consultant_leaderboard(
    consultores: List[dict],
    agendamentos: List[dict],
    fechamentos: List[dict],
    today: str,
    year: int,
) -> List[dict]:
    """Uma linha por consultor; fechamentos contam no ano corrente inteiro."""
    rows = []
    for consultor in consultores:
        cid = consultor.get("id")
        seus_agendamentos = [a for a in agendamentos if a.get("consultor_id") == cid]
        seus_fechamentos = deals_in_year(
            [f for f in fechamentos if f.get("consultor_id") == cid],
            year,
        )
        rows.append({
            "id": cid,
            "nome": consultor.get("nome"),
            "total_agendamentos": len(seus_agendamentos),
            "total_lembrados": len([a for a in seus_agendamentos if a.get("lembrado")]),
            "agendamentos_hoje": len([a for a in seus_agendamentos if a.get("data_agendamento") == today]),
            "fechamentos_mes": len(seus_fechamentos),
            "valor_total_mes": total_amount(seus_fechamentos),
        })
    return rows


def summarize(
    *,
    today: str,
    now: datetime,
    agendamentos_hoje: int,
    lembrados_hoje: int,
    total_clientes: int,
    fechamentos: List[dict],
    consultores: List[dict],
    todos_agendamentos: List[dict],
    todos_fechamentos: List[dict],
) -> Dict:
    fechamentos_mes = deals_in_month(fechamentos, now.year, now.month)
    valor_total_mes = total_amount(fechamentos_mes)

    return {
        "agendamentosHoje": agendamentos_hoje,
        "lembradosHoje": lembrados_hoje,
        "totalClientes": total_clientes,
        "fechamentosHoje": len(deals_on(fechamentos, today)),
        "fechamentosMes": len(fechamentos_mes),
        "valorTotalMes": valor_total_mes,
        "ticketMedio": average_ticket(valor_total_mes, len(fechamentos_mes)),
        "totalFechamentos": len(fechamentos),
        "estatisticasConsultores": consultant_leaderboard(
            consultores, todos_agendamentos, todos_fechamentos, today, now.year
        ),
    }


# ════════════════════════════════════════════════════════════════════════════
# CONSULTAS
# ════════════════════════════════════════════════════════════════════════════

async def count_visible_clients(caller: Caller) -> int:
    ids = await visible_client_ids(caller)
    if ids is None:
        return await db.clientes.count_documents({})
    if not ids:
        # conjunto vazio: zero, nunca "todos os clientes"
        return 0
    return await db.clientes.count_documents({"id": {"$in": sorted(ids)}})


async def build_dashboard(caller: Caller, now: Optional[datetime] = None) -> Dict:
    now = now or local_now()
    today = now.strftime("%Y-%m-%d")
    scope = scope_for(caller)

    agendamentos_hoje = await db.agendamentos.count_documents({"data_agendamento": today, **scope})
    lembrados_hoje = await db.agendamentos.count_documents(
        {"data_agendamento": today, "lembrado": True, **scope}
    )
    total_clientes = await count_visible_clients(caller)

    fechamentos = await db.fechamentos.find(scope, {"_id": 0}).to_list(None)

    consultores = await db.consultores.find(
        scope_for(caller, field="id"),
        {"_id": 0, "id": 1, "nome": 1}
    ).sort("nome", 1).to_list(None)

    todos_agendamentos = await db.agendamentos.find(
        scope,
        {"_id": 0, "id": 1, "consultor_id": 1, "lembrado": 1, "data_agendamento": 1}
    ).to_list(None)

    todos_fechamentos = await db.fechamentos.find(
        scope,
        {"_id": 0, "id": 1, "consultor_id": 1, "valor_fechado": 1, "data_fechamento": 1}
    ).to_list(None)

    return summarize(
        today=today,
        now=now,
        agendamentos_hoje=agendamentos_hoje,
        lembrados_hoje=lembrados_hoje,
        total_clientes=total_clientes,
        fechamentos=fechamentos,
        consultores=consultores,
        todos_agendamentos=todos_agendamentos,
        todos_fechamentos=todos_fechamentos,
    )
