"""
Joins feitos na aplicação: o store não resolve relacionamentos.
"""

from typing import Iterable, Sequence


async def lookup_by_id(collection, ids: Iterable, fields: Sequence[str] = ("nome",)) -> dict:
    """{id: {campo: valor}} para um conjunto de ids (None e "" ignorados)"""
    ids = sorted({i for i in ids if i})
    if not ids:
        return {}
    projection = {"_id": 0, "id": 1, **{f: 1 for f in fields}}
    docs = await collection.find({"id": {"$in": ids}}, projection).to_list(None)
    return {d["id"]: d for d in docs}
