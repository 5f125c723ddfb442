from typing import Any, Dict, List, Optional

from shared.database import get_supabase_client


class ProductRepository:
    def __init__(self, db=None):
        self.db = db or get_supabase_client()

    def get_products_paginated(self, start: int, end: int, filters: dict = None):
        # count="exact" garante que o retorno inclua o total de itens FILTRADOS
        query = self.db.table("products").select("*", count="exact")

        if filters:
            if filters.get("name"):
                query = query.ilike("name", f"%{filters['name']}%")

            if filters.get("category"):
                query = query.eq("category", filters["category"])

            if filters.get("min_price"):
                query = query.gte("price", filters["min_price"])
            if filters.get("max_price"):
                query = query.lte("price", filters["max_price"])

            if filters.get("in_stock"):
                query = query.gt("stock", 0)

            sort_type = filters.get("sort", "newest")
            if sort_type == "qty_asc":
                query = query.order("stock", desc=False)
            elif sort_type == "qty_desc":
                query = query.order("stock", desc=True)
            elif sort_type == "oldest":
                query = query.order("id", desc=False)
            else: # newest
                query = query.order("id", desc=True)
        else:
            query = query.order("id", desc=True)

        res = query.range(start, end).execute()
        return res.data or [], res.count or 0

    def get_by_id(self, product_id: Any) -> Optional[dict]:
        res = self.db.table("products").select("*").eq("id", product_id).execute()
        return res.data[0] if res.data else None

    def update(self, product_id: Any, data: dict) -> Optional[dict]:
        res = self.db.table("products").update(data).eq("id", product_id).execute()
        return res.data[0] if res.data else None

    def update_stock_if_unchanged(self, product_id: Any, data: dict, expected_stock: Any) -> Optional[dict]:
        """
        Update condicional de uma linha: só aplica se o estoque ainda for o lido.
        Retorna None quando outra escrita chegou antes (ou o produto sumiu).
        """
        query = self.db.table("products").update(data).eq("id", product_id)
        query = query.is_("stock", "null") if expected_stock is None else query.eq("stock", expected_stock)
        res = query.execute()
        return res.data[0] if res.data else None

    def revert_update(self, product_id: Any, previous: Dict[str, Any], new_stock: int, dedup_key: str) -> bool:
        """Desfaz uma alteração de estoque cujo log não pôde ser gravado."""
        data = {**previous, "pending_inventory_log": None}
        res = (
            self.db.table("products")
            .update(data)
            .eq("id", product_id)
            .eq("stock", new_stock)
            .eq("pending_inventory_log->>dedup_key", dedup_key)
            .execute()
        )
        return bool(res.data)

    def clear_pending_log(self, product_id: Any, dedup_key: str) -> bool:
        res = (
            self.db.table("products")
            .update({"pending_inventory_log": None})
            .eq("id", product_id)
            .eq("pending_inventory_log->>dedup_key", dedup_key)
            .execute()
        )
        return bool(res.data)

    def get_products_with_pending_logs(self) -> List[dict]:
        res = (
            self.db.table("products")
            .select("*")
            .not_.is_("pending_inventory_log", "null")
            .order("id", desc=False)
            .execute()
        )
        return res.data or []

    def delete(self, product_id: Any) -> bool:
        res = self.db.table("products").delete().eq("id", product_id).execute()
        return bool(res.data)

    def append_log_entry(self, row: dict) -> None:
        """Insert idempotente: dedup_key é unique, duplicata é ignorada."""
        self.db.table("inventory_logs").upsert(row, on_conflict="dedup_key", ignore_duplicates=True).execute()

    def list_inventory_logs(self, product_id: Any = None, start: int = 0, end: int = 49):
        query = self.db.table("inventory_logs").select("*", count="exact")
        if product_id is not None:
            query = query.eq("product_id", product_id)
        res = query.order("created_at", desc=True).range(start, end).execute()
        return res.data or [], res.count or 0
