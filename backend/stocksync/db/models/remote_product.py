"""RemoteProduct model - local mirror of the storefront catalog."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stocksync.db.base import Base

# Columns the sweeper overwrites on upsert. remote_id is the identity and
# local_product_id belongs to the linker.
MUTABLE_COLUMNS = (
    "sku",
    "ean",
    "name",
    "price_regular",
    "price_sale",
    "price_wholesale",
    "stock_quantity",
    "stock_managed",
    "status",
    "product_type",
    "date_modified",
    "date_modified_at",
    "synced_at",
)


class RemoteProduct(Base):
    """One item of the remote catalog as last seen by the sweeper."""

    __tablename__ = "remote_products"

    remote_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    # Cross-reference to the local product, written only by the linker
    local_product_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    sku: Mapped[str] = mapped_column(String(128), default="")
    ean: Mapped[str] = mapped_column(String(64), default="")
    name: Mapped[str] = mapped_column(String(512), default="")

    price_regular: Mapped[float] = mapped_column(Float, default=0.0)
    price_sale: Mapped[float] = mapped_column(Float, default=0.0)
    price_wholesale: Mapped[float] = mapped_column(Float, default=0.0)

    stock_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    stock_managed: Mapped[bool] = mapped_column(Boolean, default=False)

    status: Mapped[str] = mapped_column(String(32), default="", doc="publish/draft/trash")
    product_type: Mapped[str] = mapped_column(String(32), default="", doc="simple/variable/...")

    date_modified: Mapped[str] = mapped_column(String(64), default="", doc="As sent by the remote")
    date_modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_remote_products_local_product_id", "local_product_id"),
        Index("ix_remote_products_sku", "sku"),
        Index("ix_remote_products_ean", "ean"),
    )
