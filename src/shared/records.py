"""
Read boundary for product rows.

Rows written before the multi-image column existed only carry ``image``.
Every row is classified once into ``CanonicalShape | LegacyShape`` and
normalized straight into ``ProductRecord``; nothing downstream looks at the
stored shape again.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from aws_lambda_powertools import Logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

logger = Logger(service="product-records")


def _coerce_stock(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        stock = int(value)
    except (TypeError, ValueError):
        return None
    return stock if stock >= 0 else None


class _StoredShape(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Any
    stock: Optional[int] = None
    pending_inventory_log: Optional[Dict[str, Any]] = None

    @field_validator("stock", mode="before")
    @classmethod
    def _lenient_stock(cls, value: Any) -> Optional[int]:
        return _coerce_stock(value)


class CanonicalShape(_StoredShape):
    shape: Literal["canonical"] = "canonical"
    images: List[Any] = []
    images_malformed: bool = False


class LegacyShape(_StoredShape):
    shape: Literal["legacy"] = "legacy"
    image: Any


StoredProduct = Annotated[Union[CanonicalShape, LegacyShape], Field(discriminator="shape")]
_stored_adapter = TypeAdapter(StoredProduct)


class ProductRecord(BaseModel):
    """Canonical in-memory product: only the fields this core reads or writes."""

    model_config = ConfigDict(frozen=True)

    id: Any
    images: List[Any] = []
    stock: Optional[int] = None
    pending_inventory_log: Optional[Dict[str, Any]] = None
    # images gravado fora do formato de lista: as sweeps não removem o registro
    images_malformed: bool = False
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    def to_view(self) -> Dict[str, Any]:
        """Row as shown to clients: stored fields plus the normalized ``images``."""
        view = {k: v for k, v in self.raw.items() if k != "pending_inventory_log"}
        view["images"] = list(self.images)
        return view


def _coerce_images(raw: Dict[str, Any]) -> Tuple[List[Any], bool]:
    """
    ``images`` como lista. Um texto JSON de lista é decodificado e um texto
    simples vale como uma referência. Outro tipo é marcado como malformado,
    nunca tratado como lista vazia.
    """
    value = raw.get("images")
    if value is None:
        return [], False
    if isinstance(value, list):
        return value, False
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return [], False
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return parsed, False
        logger.warning("images gravado como texto", extra={"product_id": raw.get("id")})
        return [value], False
    logger.warning("images em formato inesperado", extra={"product_id": raw.get("id"), "type": type(value).__name__})
    return [], True


def classify(raw: Dict[str, Any]) -> Union[CanonicalShape, LegacyShape]:
    """Tags a stored row with its shape. ``images`` non-empty wins over ``image``."""
    images, malformed = _coerce_images(raw)
    image = raw.get("image")
    shape = "legacy" if not images and not malformed and image not in (None, "") else "canonical"
    payload = dict(raw)
    payload["shape"] = shape
    if shape == "canonical":
        payload["images"] = images
        payload["images_malformed"] = malformed
    return _stored_adapter.validate_python(payload)


def normalize(raw: Dict[str, Any]) -> ProductRecord:
    """Read-time view of a stored row; the stored row itself is never rewritten."""
    stored = classify(raw)
    malformed = False
    if isinstance(stored, LegacyShape):
        images = [stored.image]
    else:
        images = list(stored.images)
        malformed = stored.images_malformed
    return ProductRecord(
        id=stored.id,
        images=images,
        stock=stored.stock,
        pending_inventory_log=stored.pending_inventory_log,
        images_malformed=malformed,
        raw=dict(raw),
    )


def normalize_all(rows: Optional[List[Dict[str, Any]]]) -> List[ProductRecord]:
    return [normalize(row) for row in rows or []]
