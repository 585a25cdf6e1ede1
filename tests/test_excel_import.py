import pytest
from openpyxl import Workbook

from listasprecios.errors import CatalogImportError, EmptyOrMalformedFile
from listasprecios.excel_import import UNSET, ExcelImporter, ImportRow, extract_rows


def test_reads_rows_below_the_header(make_xlsx):
    path = make_xlsx(
        [
            ["A-100", "Control remoto", "Acme", "Audio", "$ 1,200.50", "USD", "12 unidades", "Menos de 5pz"],
            [2001, "Cable HDMI", "Acme", "Cables", 15, "usd", "No disponible", None],
        ]
    )

    result = extract_rows(path)

    assert [r.code for r in result.rows] == ["A-100", "2001"]
    first, second = result.rows
    assert first.name == "Control remoto"
    assert first.base_price_usd == pytest.approx(1200.5)
    assert first.stock_miami == 12
    assert first.stock_laredo == 5
    assert second.base_price_usd == 15
    assert second.stock_miami is None
    assert second.stock_laredo is None
    assert (first.markup_pct, first.impuestos_pct, first.iva_pct) == (0, 0, 0)
    assert result.notes == []


def test_skips_empty_codes_and_unpriced_rows(make_xlsx):
    path = make_xlsx(
        [
            [None, "Sin código", "Acme", "X", 10, "USD", 1, 1],
            ["   ", "Blanco", "Acme", "X", 10, "USD", 1, 1],
            ["B-1", "Sin precio", "Acme", "X", "consultar", "USD", 1, 1],
            ["B-2", "Con precio", "Acme", "X", "10", "USD", 1, 1],
        ]
    )

    result = extract_rows(path)

    assert [r.code for r in result.rows] == ["B-2"]


def test_non_usd_rows_are_kept_with_a_note(make_xlsx):
    path = make_xlsx([["C-1", "Bocina", "Acme", "Audio", "350", "mxn", 1, 1]])

    result = extract_rows(path)

    assert [r.code for r in result.rows] == ["C-1"]
    assert len(result.notes) == 1
    assert "MXN" in result.notes[0] and "C-1" in result.notes[0]


def test_negative_price_is_dropped_with_a_note(make_xlsx):
    path = make_xlsx([["N-1", "Raro", "Acme", "X", -5, "USD", 1, 1]])

    result = extract_rows(path)

    assert result.rows == []
    assert "N-1" in result.notes[0]


def test_missing_columns_leave_fields_unset(make_xlsx):
    path = make_xlsx(
        [["D-1", None, "10,5"], ["D-2", "Con nombre", 3]],
        headers=["código de artículo", "artículo", "precio"],
    )

    result = extract_rows(path)

    d1, d2 = result.rows
    assert d1.name == "D-1"
    assert d1.base_price_usd == pytest.approx(10.5)
    assert d1.brand is UNSET
    assert d1.stock_miami is UNSET
    assert d1.manufacturer_info is UNSET
    assert d2.present() == {"name": "Con nombre"}


def test_header_matching_ignores_case_and_spaces(make_xlsx):
    path = make_xlsx(
        [["E-1", "Algo", "99.90", "Detalle"]],
        headers=["  CÓDIGO DE ARTÍCULO ", "ARTÍCULO", " Precio Final", "Descripción"],
    )

    (row,) = extract_rows(path).rows

    assert row.base_price_usd == pytest.approx(99.9)
    assert row.description == "Detalle"


def test_final_price_wins_over_price(make_xlsx):
    path = make_xlsx(
        [["F-1", "Algo", 10, 20]],
        headers=["código de artículo", "artículo", "precio", "precio final"],
    )

    (row,) = extract_rows(path).rows

    assert row.base_price_usd == 20


def test_zero_rows_is_a_valid_result(make_xlsx):
    path = make_xlsx([[None, "Solo nombre", "Acme", None, None, None, None, None]])

    result = extract_rows(path)

    assert result.rows == []


def test_fewer_than_three_rows_is_malformed(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.append(["Título"])
    ws.append(["código de artículo", "precio"])
    path = tmp_path / "corto.xlsx"
    wb.save(path)

    with pytest.raises(EmptyOrMalformedFile):
        ExcelImporter(path).read_rows()


def test_missing_file(tmp_path):
    with pytest.raises(CatalogImportError) as exc:
        extract_rows(tmp_path / "nope.xlsx")
    assert exc.value.code == "FILE_NOT_FOUND"


def test_not_a_workbook(tmp_path):
    path = tmp_path / "falso.xlsx"
    path.write_text("not a zip")

    with pytest.raises(EmptyOrMalformedFile):
        extract_rows(path)


def test_import_row_from_mapping_drops_null_percentages():
    row = ImportRow.from_mapping({"code": "X", "base_price_usd": 1.0, "markup_pct": None, "brand": "B", "extra": 1})

    assert row.markup_pct == 0
    assert row.present() == {"brand": "B"}
