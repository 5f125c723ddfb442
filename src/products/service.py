from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger

from products.audit import InventoryAuditor
from products.display import DisplayMode, filter_for_display
from products.repository import ProductRepository
from products.schemas import InventoryLogEntry, ProductUpdate
from shared.blob_store import BlobStore, get_blob_store
from shared.errors import AuditAppendFailure, Conflict, NotFound
from shared.firebase import delete_product_from_firebase, set_product_in_firebase
from shared.records import normalize, normalize_all

logger = Logger(service="products")


class ProductService:
    def __init__(
        self,
        repo: Optional[ProductRepository] = None,
        blob_store: Optional[BlobStore] = None,
        display_mode: Optional[DisplayMode] = None,
        auditor: Optional[InventoryAuditor] = None,
    ):
        self.repo = repo or ProductRepository()
        self.display_mode = display_mode or DisplayMode.from_env()
        # blob store só é consultado no modo strict
        self._blob_store = blob_store
        self.auditor = auditor or InventoryAuditor(self.repo)

    @property
    def blob_store(self) -> BlobStore:
        if self._blob_store is None:
            self._blob_store = get_blob_store(self.repo.db)
        return self._blob_store

    def list_products(self, page: int, limit: int, filters: dict = None):
        start = (page - 1) * limit
        end = start + limit - 1

        data, total = self.repo.get_products_paginated(start, end, filters)
        visible = filter_for_display(normalize_all(data), self.display_mode, self.blob_store_for_mode())

        # total é o da base; no modo strict a página pode vir com menos itens
        has_next = (page * limit) < total
        next_page = (page + 1) if has_next else None

        return {
            "data": [p.to_view() for p in visible],
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "nextPage": next_page
            }
        }

    def get_product(self, product_id: Any) -> Optional[dict]:
        row = self.repo.get_by_id(product_id)
        if not row:
            return None
        visible = filter_for_display([normalize(row)], self.display_mode, self.blob_store_for_mode())
        return visible[0].to_view() if visible else None

    def blob_store_for_mode(self):
        return self.blob_store if self.display_mode == DisplayMode.STRICT else None

    def update_product(self, product_id: Any, payload: ProductUpdate) -> dict:
        """
        Atualiza o produto. Mudança de estoque grava exatamente um log
        (delta, autor, motivo) antes de retornar; se o log falhar a operação
        inteira falha.
        """
        current = self.repo.get_by_id(product_id)
        if not current:
            raise NotFound(f"Produto {product_id} não encontrado")
        record = normalize(current)
        if record.pending_inventory_log:
            self.auditor.flush_pending(record)

        data = payload.fields_to_update()
        new_stock = data.get("stock")
        old_stock = record.stock if record.stock is not None else 0

        if new_stock is not None and new_stock != record.stock:
            updated = self._update_stock(product_id, current, data, payload, old_stock, new_stock)
        elif data:
            updated = self.repo.update(product_id, data)
            if not updated:
                raise NotFound(f"Produto {product_id} não encontrado")
        else:
            updated = current

        view = normalize(updated).to_view()
        set_product_in_firebase(view)
        return view

    def _update_stock(
        self, product_id: Any, current: dict, data: dict, payload: ProductUpdate, old_stock: int, new_stock: int
    ) -> dict:
        if not payload.user_id:
            raise ValueError("user_id obrigatório para alterar estoque")

        entry = InventoryLogEntry.for_stock_change(
            product_id=product_id,
            user_id=payload.user_id,
            previous_stock=old_stock,
            new_stock=new_stock,
            reason=payload.reason,
        )
        data = {**data, "pending_inventory_log": entry.to_row()}
        updated = self.repo.update_stock_if_unchanged(product_id, data, expected_stock=current.get("stock"))
        if not updated:
            if self.repo.get_by_id(product_id) is None:
                raise NotFound(f"Produto {product_id} não encontrado")
            raise Conflict(f"Estoque do produto {product_id} foi alterado por outra operação")

        try:
            self.auditor.commit(product_id, entry)
        except AuditAppendFailure as e:
            previous = {k: current.get(k) for k in data if k != "pending_inventory_log"}
            try:
                e.compensated = self.repo.revert_update(product_id, previous, new_stock, entry.dedup_key)
            except Exception as revert_error:
                logger.error(f"Reversão do estoque falhou para produto {product_id}: {revert_error}")
            logger.error(
                "Alteração de estoque rejeitada: log não gravado",
                extra={"product_id": product_id, "dedup_key": entry.dedup_key, "compensated": e.compensated},
            )
            raise

        logger.info(
            "Estoque alterado",
            extra={"product_id": product_id, "change": entry.change, "reason": entry.reason.value},
        )
        return updated

    def delete_product(self, product_id: Any) -> bool:
        """
        Remove só o registro. As imagens ficam para a próxima limpeza de órfãs
        (outro produto pode referenciar o mesmo arquivo). O histórico de
        estoque é mantido.
        """
        deleted = self.repo.delete(product_id)
        if deleted:
            delete_product_from_firebase(product_id)
        else:
            logger.info(f"Produto {product_id} já não existia")
        return deleted

    def list_inventory_logs(self, product_id: Any = None, page: int = 1, limit: int = 50):
        start = (page - 1) * limit
        end = start + limit - 1
        data, total = self.repo.list_inventory_logs(product_id, start, end)
        return {
            "logs": data,
            "meta": {"total": total, "page": page, "limit": limit},
        }

    def reconcile_pending_audits(self) -> Dict[str, Any]:
        """Conclui logs de estoque que ficaram pendentes por falha entre update e append."""
        flushed, errors = [], []
        for record in normalize_all(self.repo.get_products_with_pending_logs()):
            try:
                entry = self.auditor.flush_pending(record)
            except AuditAppendFailure as e:
                errors.append({"product_id": record.id, "error": str(e)})
                continue
            if entry:
                flushed.append(entry.dedup_key)
        return {"flushed": flushed, "errors": errors}
