"""Staging tables holding the content of one imported export file."""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stocksync.db.base import Base


class StagingProduct(Base):
    """A product as exported in one file.

    Rows are scoped by import_id and fully replaced when the file is
    reprocessed.
    """

    __tablename__ = "staging_products"

    import_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    code: Mapped[str] = mapped_column(String(128), default="")
    name: Mapped[str] = mapped_column(String(512), default="")
    description: Mapped[str] = mapped_column(Text, default="")

    vat_id: Mapped[int] = mapped_column(BigInteger, default=0)
    category_id: Mapped[int] = mapped_column(BigInteger, default=0)
    group_id: Mapped[int] = mapped_column(BigInteger, default=0)
    unit_id: Mapped[int] = mapped_column(BigInteger, default=0)

    # Price tiers
    price_retail: Mapped[float] = mapped_column(Float, default=0.0)
    price_wholesale: Mapped[float] = mapped_column(Float, default=0.0)
    price_night: Mapped[float] = mapped_column(Float, default=0.0)
    price_extra: Mapped[float] = mapped_column(Float, default=0.0)
    price_retail_before_promo: Mapped[float] = mapped_column(Float, default=0.0)
    lowest_price_30d: Mapped[float] = mapped_column(Float, default=0.0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    marked_for_deletion: Mapped[bool] = mapped_column(Boolean, default=False)

    last_update: Mapped[str] = mapped_column(String(64), default="")
    image_folder: Mapped[str] = mapped_column(String(512), default="")
    image_file: Mapped[str] = mapped_column(String(512), default="")

    __table_args__ = (
        Index("ix_staging_products_code", "code"),
    )


class StagingStock(Base):
    """Per-warehouse stock of a product in one file."""

    __tablename__ = "staging_stock"

    import_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    warehouse_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    quantity: Mapped[float] = mapped_column(Float, default=0.0)
    reserved: Mapped[float] = mapped_column(Float, default=0.0)
