"""Enum types for database models."""

from __future__ import annotations

import enum


class ImportStatus(str, enum.Enum):
    """Processing status of an imported export file."""

    PENDING = "PENDING"
    DONE = "DONE"
    ERROR = "ERROR"


class LinkIssueReason(str, enum.Enum):
    """Reason code of a reconciliation finding."""

    MISSING_EAN_SRC = "missing_ean_src"  # Local product has no usable code
    MISSING_IN_SHOP_BY_EAN = "missing_in_shop_by_ean"  # No remote item with the code
    DUPLICATE_EAN_SHOP = "duplicate_ean_shop"  # Several remote items share the code
    MISSING_IN_MAGAZINE_BY_EAN = "missing_in_magazine_by_ean"  # Remote item, no local product


class RemoteTaskStatus(str, enum.Enum):
    """Status of an outbound write-back task."""

    PENDING = "PENDING"
    DONE = "DONE"
    ERROR = "ERROR"
