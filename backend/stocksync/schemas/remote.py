"""Pydantic schemas for remote catalog payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from stocksync.utils.parsing import parse_float


class RemoteProductPayload(BaseModel):
    """One item of the remote products collection.

    The storefront sends prices as decimal strings and is inconsistent about
    nulls, so string fields accept None and numbers, and flags accept the
    string forms some plugins emit.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    sku: str = ""
    ean: str = ""
    name: str = ""
    status: str = ""
    type: str = ""
    regular_price: str = ""
    sale_price: str = ""
    hurt_price: str = ""
    manage_stock: bool = False
    stock_quantity: float = 0.0
    date_modified_gmt: str = ""

    @field_validator(
        "sku", "ean", "name", "status", "type",
        "regular_price", "sale_price", "hurt_price", "date_modified_gmt",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("manage_stock", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes")

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> float:
        if value is None or value == "":
            return 0.0
        if isinstance(value, str):
            return parse_float(value)
        return value

    def to_row(self, modified_at: datetime | None) -> dict[str, Any]:
        """Mirror row for an upsert into remote_products."""
        return {
            "remote_id": self.id,
            "sku": self.sku.strip(),
            "ean": self.ean.strip(),
            "name": self.name.strip(),
            "price_regular": parse_float(self.regular_price),
            "price_sale": parse_float(self.sale_price),
            "price_wholesale": parse_float(self.hurt_price),
            "stock_quantity": self.stock_quantity,
            "stock_managed": self.manage_stock,
            "status": self.status,
            "product_type": self.type,
            "date_modified": self.date_modified_gmt,
            "date_modified_at": modified_at,
            "synced_at": datetime.now(timezone.utc),
        }
