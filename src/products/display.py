"""Read-time filter: hides products whose images are all gone (strict mode only)."""

from enum import Enum
from typing import Dict, Iterable, List

from aws_lambda_powertools import Logger

from shared.blob_store import BlobStore
from shared.config import get_display_mode
from shared.errors import IOFailure, PermissionDenied
from shared.records import ProductRecord
from shared.references import extract_references

logger = Logger(service="products")


class DisplayMode(str, Enum):
    STRICT = "strict"
    PERMISSIVE = "permissive"

    @classmethod
    def from_env(cls) -> "DisplayMode":
        return cls(get_display_mode())


def _has_surviving_image(record: ProductRecord, blob_store: BlobStore, cache: Dict[str, bool]) -> bool:
    for key in extract_references(record):
        if key not in cache:
            try:
                cache[key] = blob_store.exists(key)
            except (IOFailure, PermissionDenied) as e:
                logger.warning("Falha ao verificar imagem", extra={"key": key, "error": str(e)})
                cache[key] = False
        if cache[key]:
            return True
    return False


def filter_for_display(
    records: Iterable[ProductRecord], mode: DisplayMode, blob_store: BlobStore
) -> List[ProductRecord]:
    """
    Strict: drops records with no existing image; survivors are returned as-is
    (dead references are not stripped). Permissive: no existence check at all.
    Never writes to the record store.
    """
    records = list(records)
    if mode != DisplayMode.STRICT:
        return records
    cache: Dict[str, bool] = {}
    visible = [r for r in records if _has_surviving_image(r, blob_store, cache)]
    if len(visible) != len(records):
        logger.info("Produtos ocultados por imagens ausentes", extra={"hidden": len(records) - len(visible)})
    return visible
