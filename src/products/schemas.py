from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List, Dict, Any
from uuid import uuid4


class InventoryChangeReason(str, Enum):
    EDIT = "edit"
    SALE = "sale"
    RESTOCK = "restock"


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    # não são colunas: motivo e autor da alteração de estoque
    reason: InventoryChangeReason = InventoryChangeReason.EDIT
    user_id: Optional[str] = None

    @field_serializer('price', when_used='json')
    def serialize_price(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None

    def fields_to_update(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, exclude={"reason", "user_id"})


def new_dedup_key(product_id: Any) -> str:
    """Uma chave por alteração aceita; retries reaproveitam a do marcador pendente."""
    return f"{product_id}:{uuid4().hex}"


class InventoryLogEntry(BaseModel):
    """Entrada imutável do histórico de estoque (tabela inventory_logs)."""

    id: Optional[Any] = None
    product_id: Any
    user_id: str
    change: int
    reason: InventoryChangeReason
    previous_stock: int
    new_stock: int
    created_at: datetime
    dedup_key: str

    @classmethod
    def for_stock_change(
        cls,
        product_id: Any,
        user_id: str,
        previous_stock: int,
        new_stock: int,
        reason: InventoryChangeReason = InventoryChangeReason.EDIT,
        created_at: Optional[datetime] = None,
    ) -> "InventoryLogEntry":
        created_at = created_at or datetime.now(timezone.utc)
        return cls(
            product_id=product_id,
            user_id=user_id,
            change=new_stock - previous_stock,
            reason=reason,
            previous_stock=previous_stock,
            new_stock=new_stock,
            created_at=created_at,
            dedup_key=new_dedup_key(product_id),
        )

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})
