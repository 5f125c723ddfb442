"""Repository: leitura dos produtos no Supabase para a limpeza de imagens órfãs."""

from typing import List

from shared.database import fetch_all_rows, get_supabase_client
from shared.records import ProductRecord, normalize_all


class CleanupOrphanImagesRepository:
    """Snapshot das referências de imagem de todos os produtos."""

    def __init__(self, db=None) -> None:
        self.db = db or get_supabase_client()

    def get_products(self) -> List[ProductRecord]:
        """Todos os produtos (só id, image e images), já normalizados."""
        rows = fetch_all_rows(self.db, "products", "id, image, images")
        return normalize_all(rows)
