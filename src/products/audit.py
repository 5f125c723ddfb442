"""
Stock-change audit log.

A stock update writes the new value and a ``pending_inventory_log`` marker
in the same row update. The entry is then appended to ``inventory_logs``
(idempotent on ``dedup_key``) and the marker cleared. A marker left behind by
a crash is flushed before the next update of that product, or by
``ProductService.reconcile_pending_audits``.
"""

import time
from typing import Any, Callable, Optional

from aws_lambda_powertools import Logger

from products.schemas import InventoryLogEntry
from shared.config import get_audit_max_attempts
from shared.errors import AuditAppendFailure
from shared.records import ProductRecord

logger = Logger(service="products")


class InventoryAuditor:
    def __init__(
        self,
        repo,
        max_attempts: Optional[int] = None,
        backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo = repo
        self.max_attempts = max_attempts or get_audit_max_attempts()
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def append(self, entry: InventoryLogEntry) -> None:
        """Appends with bounded retries; raises AuditAppendFailure when all attempts fail."""
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.repo.append_log_entry(entry.to_row())
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    "Falha ao gravar log de estoque",
                    extra={"dedup_key": entry.dedup_key, "attempt": attempt, "error": str(e)},
                )
                if attempt < self.max_attempts:
                    self.sleep(self.backoff_seconds * attempt)
        raise AuditAppendFailure(
            f"Log de estoque não gravado após {self.max_attempts} tentativas ({entry.dedup_key})",
            cause=last_error,
        )

    def commit(self, product_id: Any, entry: InventoryLogEntry) -> None:
        self.append(entry)
        try:
            self.repo.clear_pending_log(product_id, entry.dedup_key)
        except Exception as e:
            # marcador restante é reprocessado como no-op (dedup_key)
            logger.warning("Marcador de log pendente não foi limpo", extra={"product_id": product_id, "error": str(e)})

    def flush_pending(self, product: ProductRecord) -> Optional[InventoryLogEntry]:
        """Completes an interrupted stock update. Returns the flushed entry, if any."""
        if not product.pending_inventory_log:
            return None
        entry = InventoryLogEntry.model_validate(product.pending_inventory_log)
        logger.info("Concluindo log de estoque pendente", extra={"product_id": product.id, "dedup_key": entry.dedup_key})
        self.commit(product.id, entry)
        return entry
