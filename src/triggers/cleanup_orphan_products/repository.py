"""Repository: produtos no Supabase para a limpeza de produtos sem imagem."""

import json
from typing import Any, List, Optional

from shared.database import fetch_all_rows, get_supabase_client
from shared.records import ProductRecord, normalize, normalize_all

COLUMNS = "id, image, images"
IMAGE_COLUMNS = ("image", "images")


class CleanupOrphanProductsRepository:
    def __init__(self, db=None) -> None:
        self.db = db or get_supabase_client()

    def get_products(self) -> List[ProductRecord]:
        return normalize_all(fetch_all_rows(self.db, "products", COLUMNS))

    def get_product(self, product_id: Any) -> Optional[ProductRecord]:
        res = self.db.table("products").select(COLUMNS).eq("id", product_id).execute()
        return normalize(res.data[0]) if res.data else None

    def delete_if_unchanged(self, product: ProductRecord) -> bool:
        """
        Delete condicional: só remove a linha se image/images ainda forem os
        lidos na verificação. Retorna False quando nada foi removido.
        """
        query = self.db.table("products").delete().eq("id", product.id)
        for column in IMAGE_COLUMNS:
            value = product.raw.get(column)
            if value is None:
                query = query.is_(column, "null")
            elif isinstance(value, (list, dict)):
                # images é jsonb
                query = query.eq(column, json.dumps(value))
            else:
                query = query.eq(column, value)
        res = query.execute()
        return bool(res.data)
