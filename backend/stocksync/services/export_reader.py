"""Streaming reader for exported catalog files (exp_wyk_*.xml / .zip).

The export is a single XML document:

    <dane>
      <transmisja_id>...</transmisja_id>
      <towary>
        <towar>
          <towar_id/> <kod/> <nazwa/> ... <magazyny><magazyn/>...</magazyny>
        </towar>
        ...
      </towary>
    </dane>

Documents are parsed with lxml's iterparse and every product element is
released as soon as it has been decoded, so memory stays flat regardless of
file size. Legacy encoding labels found in the XML declaration ("Latin II",
"cp1250", ...) are rewritten to their standard names before the parser sees
them.
"""

from __future__ import annotations

import re
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from lxml import etree

from stocksync.core.logging import get_logger
from stocksync.utils.parsing import parse_flag, parse_float, parse_int

logger = get_logger(__name__)

TRANSMISSION_TAG = "transmisja_id"
PRODUCT_TAG = "towar"
STOCK_TAG = "magazyn"

# Bytes inspected for the XML declaration
HEAD_SIZE = 1024

ENCODING_ALIASES = {
    "latin ii": "iso-8859-2",
    "latin-2": "iso-8859-2",
    "latin2": "iso-8859-2",
    "iso8859-2": "iso-8859-2",
    "iso_8859-2": "iso-8859-2",
    "cp1250": "windows-1250",
    "windows1250": "windows-1250",
    "win-1250": "windows-1250",
}

_DECLARED_ENCODING_RE = re.compile(
    rb"""(<\?xml[^>]*?encoding\s*=\s*)(["'])([^"']*)\2"""
)


class ExportFormatError(Exception):
    """Raised when an export file is structurally unreadable."""

    pass


@dataclass
class ExportStock:
    """Stock of a product in one warehouse."""

    warehouse_id: int
    quantity: float
    reserved: float


@dataclass
class ExportProduct:
    """A decoded <towar> element."""

    product_id: int
    code: str
    name: str
    description: str
    vat_id: int
    category_id: int
    group_id: int
    unit_id: int
    price_retail: float
    price_wholesale: float
    price_night: float
    price_extra: float
    price_retail_before_promo: float
    lowest_price_30d: float
    is_active: bool
    marked_for_deletion: bool
    last_update: str
    image_folder: str
    image_file: str
    stocks: list[ExportStock] = field(default_factory=list)

    def as_row(self, import_id: int) -> dict:
        """Staging product row for a multi-row insert."""
        return {
            "import_id": import_id,
            "product_id": self.product_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "vat_id": self.vat_id,
            "category_id": self.category_id,
            "group_id": self.group_id,
            "unit_id": self.unit_id,
            "price_retail": self.price_retail,
            "price_wholesale": self.price_wholesale,
            "price_night": self.price_night,
            "price_extra": self.price_extra,
            "price_retail_before_promo": self.price_retail_before_promo,
            "lowest_price_30d": self.lowest_price_30d,
            "is_active": self.is_active,
            "marked_for_deletion": self.marked_for_deletion,
            "last_update": self.last_update,
            "image_folder": self.image_folder,
            "image_file": self.image_file,
        }

    def stock_rows(self, import_id: int) -> list[dict]:
        """Staging stock rows for a multi-row insert."""
        return [
            {
                "import_id": import_id,
                "product_id": self.product_id,
                "warehouse_id": stock.warehouse_id,
                "quantity": stock.quantity,
                "reserved": stock.reserved,
            }
            for stock in self.stocks
        ]


@dataclass
class ExportEvent:
    """One item produced while streaming a document."""

    kind: str  # "transmission_id" or "product"
    transmission_id: str | None = None
    product: ExportProduct | None = None


def normalize_charset(label: str) -> str:
    """Map non-standard encoding labels onto names the parser understands."""
    cleaned = label.strip().lower()
    return ENCODING_ALIASES.get(cleaned, cleaned)


def rewrite_declared_encoding(head: bytes) -> bytes:
    """Replace the encoding label in an XML declaration with its standard name."""

    def _replace(match: re.Match[bytes]) -> bytes:
        declared = match.group(3).decode("ascii", errors="ignore")
        normalized = normalize_charset(declared).encode("ascii")
        return match.group(1) + match.group(2) + normalized + match.group(2)

    return _DECLARED_ENCODING_RE.sub(_replace, head, count=1)


# Raised by zipfile while decompressing a damaged member (bad CRC, truncated data)
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError)


def _read_raw(raw: BinaryIO, size: int = -1) -> bytes:
    try:
        return raw.read(size)
    except ARCHIVE_READ_ERRORS as e:
        raise ExportFormatError(f"Corrupt ZIP archive: {e}") from e


class _PrefixedStream:
    """Read-only stream that serves a (rewritten) head before the rest."""

    def __init__(self, head: bytes, rest: BinaryIO):
        self._head = head
        self._rest = rest

    def read(self, size: int = -1) -> bytes:
        if self._head:
            if size is None or size < 0:
                data, self._head = self._head + _read_raw(self._rest), b""
                return data
            data, self._head = self._head[:size], self._head[size:]
            return data
        return _read_raw(self._rest, size)


def is_export_filename(name: str, prefix: str = "exp_wyk_") -> bool:
    """Check the exp_wyk_*.xml / exp_wyk_*.zip naming convention."""
    lowered = name.lower()
    return name.startswith(prefix) and lowered.endswith((".xml", ".zip"))


@contextmanager
def open_export(path: Path) -> Iterator[_PrefixedStream]:
    """Open an export file (plain XML or the XML member of a ZIP) for streaming.

    Raises:
        ExportFormatError: If a ZIP is corrupt or holds no XML member. Damage
            inside the member surfaces from the stream's reads as well.
    """
    if path.suffix.lower() == ".zip":
        try:
            archive = zipfile.ZipFile(path)
        except zipfile.BadZipFile as e:
            raise ExportFormatError(f"Corrupt ZIP archive: {e}") from e
        with archive:
            member = next(
                (n for n in archive.namelist() if n.lower().endswith(".xml")),
                None,
            )
            if member is None:
                raise ExportFormatError(f"No XML document inside {path.name}")
            try:
                raw = archive.open(member)
            except ARCHIVE_READ_ERRORS as e:
                raise ExportFormatError(f"Corrupt ZIP archive: {e}") from e
            with raw:
                head = _read_raw(raw, HEAD_SIZE)
                yield _PrefixedStream(rewrite_declared_encoding(head), raw)
        return

    with open(path, "rb") as raw:
        head = raw.read(HEAD_SIZE)
        yield _PrefixedStream(rewrite_declared_encoding(head), raw)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""  # comments and processing instructions
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.lower()


def _child_texts(element: etree._Element) -> dict[str, str]:
    texts: dict[str, str] = {}
    for child in element:
        name = _local_name(child.tag)
        if name:
            texts[name] = child.text or ""
    return texts


def _decode_product(element: etree._Element) -> ExportProduct:
    fields = _child_texts(element)

    stocks: list[ExportStock] = []
    for container in element:
        if _local_name(container.tag) != "magazyny":
            continue
        for stock_el in container:
            if _local_name(stock_el.tag) != STOCK_TAG:
                continue
            stock = _child_texts(stock_el)
            stocks.append(
                ExportStock(
                    warehouse_id=parse_int(stock.get("magazyn_id")),
                    quantity=parse_float(stock.get("stan_magazynu")),
                    reserved=parse_float(stock.get("rezerwacja_ilosci")),
                )
            )

    return ExportProduct(
        product_id=parse_int(fields.get("towar_id")),
        code=fields.get("kod", "").strip(),
        name=fields.get("nazwa", "").strip(),
        description=fields.get("opis1", ""),
        vat_id=parse_int(fields.get("vat_id")),
        category_id=parse_int(fields.get("kategoria_id")),
        group_id=parse_int(fields.get("asortyment_id")),
        unit_id=parse_int(fields.get("jm_id")),
        price_retail=parse_float(fields.get("cena_detal")),
        price_wholesale=parse_float(fields.get("cena_hurtowa")),
        price_night=parse_float(fields.get("cena_nocna")),
        price_extra=parse_float(fields.get("cena_dodatkowa")),
        price_retail_before_promo=parse_float(fields.get("cena_detal_przed_prom")),
        lowest_price_30d=parse_float(fields.get("najnizsza_cena_30_dni_detal")),
        is_active=parse_flag(fields.get("aktywny_w_si")),
        marked_for_deletion=parse_flag(fields.get("do_usuniecia")),
        last_update=fields.get("data_aktualizacji", "").strip(),
        image_folder=fields.get("folder_zdjec", "").strip(),
        image_file=fields.get("plik_zdjecia", "").strip(),
        stocks=stocks,
    )


def _release(element: etree._Element) -> None:
    """Free a processed element and the siblings already parsed before it."""
    element.clear()
    parent = element.getparent()
    if parent is not None:
        while element.getprevious() is not None:
            del parent[0]


def iter_export(stream: _PrefixedStream) -> Iterator[ExportEvent]:
    """Stream transmission id and product events from an open export.

    Raises:
        ExportFormatError: If the document is not well-formed XML.
    """
    parser = etree.iterparse(
        stream,
        events=("end",),
        huge_tree=True,
        resolve_entities=False,
        remove_comments=True,
    )
    try:
        for _, element in parser:
            name = _local_name(element.tag)
            if name == TRANSMISSION_TAG:
                yield ExportEvent(
                    kind="transmission_id",
                    transmission_id=(element.text or "").strip(),
                )
                _release(element)
            elif name == PRODUCT_TAG:
                yield ExportEvent(kind="product", product=_decode_product(element))
                _release(element)
    except etree.LxmlError as e:
        raise ExportFormatError(f"Malformed XML: {e}") from e


def read_transmission_id(path: Path) -> str:
    """Find the transmisja_id of an export without loading the document.

    The id may be declared after a large product list; products are streamed
    and discarded until it is found. Returns "" when the document has none.
    """
    with open_export(path) as stream:
        for event in iter_export(stream):
            if event.kind == "transmission_id" and event.transmission_id:
                return event.transmission_id
    return ""
