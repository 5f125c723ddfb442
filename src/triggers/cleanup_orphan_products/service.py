"""Service: remove produtos cujas imagens sumiram todas do blob store."""

from typing import Any, Callable, Dict, List, Optional

from aws_lambda_powertools import Logger

from shared.blob_store import BlobStore, get_blob_store
from shared.cancellation import StopCheck, never_stop
from shared.errors import Conflict, InvalidReference, IOFailure, PermissionDenied
from shared.firebase import delete_product_from_firebase
from shared.records import ProductRecord
from shared.references import resolve_references
from shared.sweep_result import SweepError
from triggers.cleanup_orphan_products.repository import CleanupOrphanProductsRepository
from triggers.cleanup_orphan_products.schemas import OrphanRecordSweepResult

logger = Logger(service="cleanup-orphan-products")


class CleanupOrphanProductsService:
    """
    Um produto é candidato quando não tem nenhuma referência de imagem, ou
    quando todas as suas imagens estão ausentes do blob store. Perda parcial
    não é motivo de remoção (fica a cargo do filtro de exibição).

    Antes do delete cada candidato é relido e o predicado reavaliado. O
    delete é condicional ao image/images dessa releitura: um produto que
    ganhou uma imagem válida em qualquer ponto do intervalo é mantido e
    reportado como Conflict.
    """

    def __init__(
        self,
        repo: Optional[CleanupOrphanProductsRepository] = None,
        blob_store: Optional[BlobStore] = None,
        mirror_delete: Callable[[Any], bool] = delete_product_from_firebase,
    ) -> None:
        self.repo = repo or CleanupOrphanProductsRepository()
        self.blob_store = blob_store or get_blob_store(self.repo.db)
        self.mirror_delete = mirror_delete

    def _exists(self, key: str, cache: Dict[str, bool]) -> bool:
        if key not in cache:
            cache[key] = self.blob_store.exists(key)
        return cache[key]

    def is_orphan(self, product: ProductRecord, cache: Optional[Dict[str, bool]] = None) -> bool:
        """
        Referências inválidas contam como imagens ausentes. Um images
        malformado levanta InvalidReference e o registro é mantido.
        """
        if product.images_malformed:
            raise InvalidReference(product.raw.get("images"), "images fora do formato de lista", product.id)
        cache = {} if cache is None else cache
        keys, _ = resolve_references(product)
        if not keys:
            return True
        return not any(self._exists(key, cache) for key in dict.fromkeys(keys))

    def run(self, should_stop: StopCheck = never_stop, dry_run: bool = False) -> OrphanRecordSweepResult:
        result = OrphanRecordSweepResult(dry_run=dry_run)
        cache: Dict[str, bool] = {}
        candidates: List[ProductRecord] = []

        for product in self.repo.get_products():
            if should_stop():
                result.cancelled = True
                break
            result.scanned += 1
            try:
                if self.is_orphan(product, cache):
                    candidates.append(product)
            except (InvalidReference, IOFailure, PermissionDenied) as e:
                logger.warning("Falha ao verificar imagens", extra={"product_id": product.id, "error": str(e)})
                result.errors.append(SweepError.from_exception(product.id, e))

        result.candidates = [p.id for p in candidates]
        logger.info("Candidatos à remoção", extra={"scanned": result.scanned, "candidates": result.candidates})
        if dry_run or not candidates or result.cancelled:
            return result

        confirmed = self._reverify(candidates, result, should_stop)
        if confirmed:
            self._delete(confirmed, result, should_stop)
        for product_id in result.deleted_ids:
            self.mirror_delete(product_id)
        return result

    def _reverify(
        self, candidates: List[ProductRecord], result: OrphanRecordSweepResult, should_stop: StopCheck
    ) -> List[ProductRecord]:
        confirmed: List[ProductRecord] = []
        for candidate in candidates:
            if should_stop():
                result.cancelled = True
                break
            try:
                fresh = self.repo.get_product(candidate.id)
                if fresh is None:
                    # já removido por outra operação: delete idempotente
                    result.deleted_ids.append(candidate.id)
                    continue
                if not self.is_orphan(fresh):
                    raise Conflict(f"Produto {candidate.id} voltou a ter imagem válida")
            except Conflict as e:
                logger.info("Produto mantido", extra={"product_id": candidate.id, "reason": str(e)})
                result.errors.append(SweepError.from_exception(candidate.id, e))
                continue
            except (InvalidReference, IOFailure, PermissionDenied) as e:
                result.errors.append(SweepError.from_exception(candidate.id, e))
                continue
            confirmed.append(fresh)
        return confirmed

    def _delete(
        self, confirmed: List[ProductRecord], result: OrphanRecordSweepResult, should_stop: StopCheck
    ) -> None:
        for product in confirmed:
            if should_stop():
                result.cancelled = True
                break
            try:
                if self.repo.delete_if_unchanged(product):
                    result.deleted_ids.append(product.id)
                    continue
                # nada removido: ou sumiu em paralelo, ou image/images mudou
                still_there = self.repo.get_product(product.id) is not None
            except Exception as e:
                logger.warning("Falha ao remover produto", extra={"product_id": product.id, "error": str(e)})
                result.errors.append(SweepError.from_exception(product.id, e))
                continue
            if still_there:
                result.errors.append(
                    SweepError.from_exception(product.id, Conflict(f"Produto {product.id} alterado antes do delete"))
                )
            else:
                result.deleted_ids.append(product.id)
        logger.info("Produtos removidos", extra={"ids": result.deleted_ids})
