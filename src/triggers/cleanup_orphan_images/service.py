"""Service: lógica de limpeza de imagens órfãs."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set

from aws_lambda_powertools import Logger

from shared.blob_store import BlobStore, get_blob_store
from shared.cancellation import StopCheck, never_stop
from shared.config import get_grace_period_seconds
from shared.errors import IOFailure, NotFound, PermissionDenied
from shared.references import resolve_references
from shared.sweep_result import SweepError
from triggers.cleanup_orphan_images.repository import CleanupOrphanImagesRepository
from triggers.cleanup_orphan_images.schemas import OrphanFileSweepResult

logger = Logger(service="cleanup-orphan-images")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CleanupOrphanImagesService:
    """
    Remove do blob store os arquivos não referenciados por nenhum produto.

    A listagem do blob store é feita antes da leitura dos produtos, e só
    arquivos modificados antes de ``started_at - grace_period`` são elegíveis:
    um upload recente cujo produto ainda não foi gravado nunca é apagado.
    """

    def __init__(
        self,
        repo: Optional[CleanupOrphanImagesRepository] = None,
        blob_store: Optional[BlobStore] = None,
        grace_period_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repo = repo or CleanupOrphanImagesRepository()
        self.blob_store = blob_store or get_blob_store(self.repo.db)
        self.grace_period = timedelta(
            seconds=get_grace_period_seconds() if grace_period_seconds is None else grace_period_seconds
        )
        self.clock = clock

    def referenced_keys(self, result: OrphanFileSweepResult) -> Set[str]:
        referenced: Set[str] = set()
        for product in self.repo.get_products():
            keys, invalid = resolve_references(product)
            referenced.update(keys)
            for err in invalid:
                logger.warning(
                    "Referência inválida ignorada",
                    extra={"product_id": product.id, "reference": repr(err.reference), "reason": err.reason},
                )
                result.invalid_references.append(SweepError.from_exception(product.id, err))
        return referenced

    def run(self, should_stop: StopCheck = never_stop, dry_run: bool = False) -> OrphanFileSweepResult:
        """Executa a limpeza e retorna o resumo (parcial se cancelada)."""
        started_at = self.clock()
        result = OrphanFileSweepResult(
            started_at=started_at, cutoff=started_at - self.grace_period, dry_run=dry_run
        )

        entries = self.blob_store.list()
        referenced = self.referenced_keys(result)
        logger.info(
            "Snapshot da limpeza",
            extra={"blobs": len(entries), "referenced": len(referenced), "cutoff": result.cutoff.isoformat()},
        )

        for entry in entries:
            if should_stop():
                result.cancelled = True
                logger.warning("Limpeza interrompida", extra={"scanned": result.scanned})
                break
            result.scanned += 1
            if entry.key in referenced:
                continue
            result.orphans_found += 1
            if entry.last_modified is None or entry.last_modified > result.cutoff:
                result.skipped_recent.add(entry.key)
                continue
            if dry_run:
                continue
            try:
                self.blob_store.delete(entry.key)
            except NotFound:
                logger.debug("Arquivo já removido", extra={"key": entry.key})
            except (PermissionDenied, IOFailure) as e:
                logger.warning("Falha ao deletar", extra={"key": entry.key, "error": str(e)})
                result.errors.append(SweepError.from_exception(entry.key, e))
                continue
            result.deleted_keys.add(entry.key)

        if result.deleted_keys:
            logger.info("Órfãos deletados", extra={"keys": sorted(result.deleted_keys)})
        return result
