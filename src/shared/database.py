import os
from typing import List, Optional

from supabase import create_client, Client

_client: Optional[Client] = None


def open_supabase_client() -> Client:
    """Cria um novo client Supabase a partir das ENV VARS (sem cache)."""
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("Configurações do Supabase ausentes (ENV VARS)")
    return create_client(url, key)


def get_supabase_client() -> Client:
    """Handle do processo: aberto no cold start e reutilizado entre invocações."""
    global _client
    if not _client:
        _client = open_supabase_client()
    return _client


def close_supabase_client() -> None:
    global _client
    _client = None


def fetch_all_rows(db: Client, table: str, columns: str = "*", page_size: int = 1000) -> List[dict]:
    """
    Lê a tabela inteira em páginas (PostgREST corta em max-rows).
    Ordena por id para que as páginas não se sobreponham.
    """
    rows: List[dict] = []
    start = 0
    while True:
        res = (
            db.table(table)
            .select(columns)
            .order("id", desc=False)
            .range(start, start + page_size - 1)
            .execute()
        )
        page = res.data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size
