"""Tests for the streaming export reader."""

from __future__ import annotations

import zipfile

import pytest

from stocksync.services.export_reader import (
    ExportFormatError,
    is_export_filename,
    iter_export,
    normalize_charset,
    open_export,
    read_transmission_id,
    rewrite_declared_encoding,
)

from factories import build_export, product_xml, write_damaged_zip, write_export


def _products(path):
    with open_export(path) as stream:
        return [e.product for e in iter_export(stream) if e.kind == "product"]


class TestFilenames:
    """Tests for is_export_filename."""

    @pytest.mark.parametrize(
        "name", ["exp_wyk_1.xml", "exp_wyk_20240101120000.XML", "exp_wyk_a.zip"]
    )
    def test_accepted(self, name):
        assert is_export_filename(name)

    @pytest.mark.parametrize("name", ["exp_wyk_1.txt", "other_1.xml", "EXP_WYK_1.xml", "exp_wyk_1.xml.tmp"])
    def test_rejected(self, name):
        assert not is_export_filename(name)

    def test_custom_prefix(self):
        assert is_export_filename("feed_1.xml", prefix="feed_")


class TestEncodingLabels:
    """Tests for declaration encoding remapping."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Latin II", "iso-8859-2"),
            ("LATIN2", "iso-8859-2"),
            ("cp1250", "windows-1250"),
            ("UTF-8", "utf-8"),
        ],
    )
    def test_normalize_charset(self, label, expected):
        assert normalize_charset(label) == expected

    def test_rewrites_only_the_declaration(self):
        head = b'<?xml version="1.0" encoding="Latin II"?><dane>Latin II</dane>'
        rewritten = rewrite_declared_encoding(head)
        assert rewritten.startswith(b'<?xml version="1.0" encoding="iso-8859-2"?>')
        assert rewritten.endswith(b"<dane>Latin II</dane>")

    def test_single_quotes(self):
        head = b"<?xml version='1.0' encoding='cp1250'?><dane/>"
        assert b"encoding='windows-1250'" in rewrite_declared_encoding(head)

    def test_no_declaration_untouched(self):
        head = b"<dane><towar/></dane>"
        assert rewrite_declared_encoding(head) == head

    def test_latin2_document_decodes_national_characters(self, tmp_path):
        content = build_export(
            [product_xml(1, "590", name="Żółta łódź")],
            encoding="Latin II",
        )
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        [product] = _products(path)
        assert product.name == "Żółta łódź"

    def test_cp1250_document(self, tmp_path):
        content = build_export([product_xml(1, "590", name="Śruba")], encoding="cp1250")
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        [product] = _products(path)
        assert product.name == "Śruba"


class TestIterExport:
    """Tests for iter_export decoding."""

    def test_decodes_all_fields(self, tmp_path):
        content = build_export(
            [
                product_xml(
                    7,
                    " 0-12345 ",
                    name=" Hammer ",
                    stocks=[(1, "10,5", "2"), (2, "", "x")],
                    extra={
                        "opis1": "Steel",
                        "vat_id": "3",
                        "kategoria_id": "11",
                        "asortyment_id": "12",
                        "jm_id": "1",
                        "cena_detal": "19,99",
                        "cena_hurtowa": "15.5",
                        "cena_nocna": "",
                        "cena_dodatkowa": "abc",
                        "cena_detal_przed_prom": "21,00",
                        "najnizsza_cena_30_dni_detal": "18,50",
                        "aktywny_w_si": "T",
                        "do_usuniecia": "N",
                        "data_aktualizacji": "2024-01-15 10:00:00",
                        "folder_zdjec": "img",
                        "plik_zdjecia": "7.jpg",
                    },
                )
            ]
        )
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        [product] = _products(path)
        assert product.product_id == 7
        assert product.code == "0-12345"
        assert product.name == "Hammer"
        assert product.description == "Steel"
        assert (product.vat_id, product.category_id, product.group_id, product.unit_id) == (3, 11, 12, 1)
        assert product.price_retail == 19.99
        assert product.price_wholesale == 15.5
        assert product.price_night == 0.0
        assert product.price_extra == 0.0
        assert product.price_retail_before_promo == 21.0
        assert product.lowest_price_30d == 18.5
        assert product.is_active is True
        assert product.marked_for_deletion is False
        assert product.last_update == "2024-01-15 10:00:00"
        assert (product.image_folder, product.image_file) == ("img", "7.jpg")

        assert [(s.warehouse_id, s.quantity, s.reserved) for s in product.stocks] == [
            (1, 10.5, 2.0),
            (2, 0.0, 0.0),
        ]

    def test_missing_fields_default(self, tmp_path):
        content = build_export(["<towar><towar_id>5</towar_id></towar>"])
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        [product] = _products(path)
        assert product.code == ""
        assert product.price_retail == 0.0
        assert product.is_active is False
        assert product.stocks == []

    def test_rows_carry_import_id(self, tmp_path):
        content = build_export([product_xml(5, "1", stocks=[(1, "1", "0")])])
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        [product] = _products(path)
        assert product.as_row(9)["import_id"] == 9
        assert product.stock_rows(9) == [
            {"import_id": 9, "product_id": 5, "warehouse_id": 1, "quantity": 1.0, "reserved": 0.0}
        ]

    def test_transmission_id_event(self, tmp_path):
        content = build_export([product_xml(1, "1")], transmission_id=" TX-9 ")
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        with open_export(path) as stream:
            events = list(iter_export(stream))

        assert events[0].kind == "transmission_id"
        assert events[0].transmission_id == "TX-9"
        assert events[1].kind == "product"

    def test_malformed_document_raises(self, tmp_path):
        content = build_export([product_xml(1, "1")])[:-20]
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        with pytest.raises(ExportFormatError):
            _products(path)

    def test_many_products_stream(self, tmp_path):
        content = build_export([product_xml(i, str(i)) for i in range(1, 2001)])
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        products = _products(path)
        assert len(products) == 2000
        assert products[-1].product_id == 2000


class TestZipExports:
    """Tests for ZIP-wrapped exports."""

    def test_reads_xml_member(self, tmp_path):
        path = tmp_path / "exp_wyk_1.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("readme.txt", "ignored")
            archive.writestr("exp_wyk_1.xml", build_export([product_xml(3, "33")]))

        [product] = _products(path)
        assert product.product_id == 3

    def test_zip_without_xml(self, tmp_path):
        path = tmp_path / "exp_wyk_1.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("readme.txt", "nothing here")

        with pytest.raises(ExportFormatError):
            _products(path)

    def test_corrupt_zip(self, tmp_path):
        path = write_export(tmp_path, "exp_wyk_1.zip", b"PK\x03\x04 not really")

        with pytest.raises(ExportFormatError):
            _products(path)

    def test_member_failing_crc(self, tmp_path):
        path = write_damaged_zip(
            tmp_path, "exp_wyk_1.zip", build_export([product_xml(1, "1")], transmission_id="TX")
        )

        with pytest.raises(ExportFormatError, match="Corrupt ZIP"):
            _products(path)
        with pytest.raises(ExportFormatError):
            read_transmission_id(path)


class TestReadTransmissionId:
    """Tests for read_transmission_id."""

    def test_declared_after_products(self, tmp_path):
        content = build_export(
            [product_xml(i, str(i)) for i in range(1, 50)],
            transmission_id="LATE-1",
            transmission_last=True,
        )
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        assert read_transmission_id(path) == "LATE-1"

    def test_absent(self, tmp_path):
        content = build_export([product_xml(1, "1")], transmission_id=None)
        path = write_export(tmp_path, "exp_wyk_1.xml", content)

        assert read_transmission_id(path) == ""
