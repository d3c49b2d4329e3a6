import io

import pandas as pd
import pytest

from census_intake.constants import SourceKind
from census_intake.exceptions import ExtractionError, UnsupportedFileError
from census_intake.extraction.delimited import DelimitedTextExtractor, sniff_delimiter
from census_intake.extraction.document import PortableDocumentExtractor, RasterImageExtractor
from census_intake.extraction.factory import ExtractorRegistry
from census_intake.extraction.spreadsheet import SpreadsheetExtractor
from census_intake.extraction.text import decode_text, grid_from_text

from conftest import census_csv, census_rows


def test_sniff_delimiter():
    assert sniff_delimiter("a;b;c\n1;2;3") == ";"
    assert sniff_delimiter("a\tb\n1\t2") == "\t"
    assert sniff_delimiter("just text") == ","


def test_csv_keeps_blank_rows():
    result = DelimitedTextExtractor().extract(b"a,b\n1,2\n\n\n3,4\n", "sample.csv")
    assert result.grid.rows == (("a", "b"), ("1", "2"), (), (), ("3", "4"))
    assert "comma" in result.method


def test_csv_census_file():
    result = DelimitedTextExtractor().extract(census_csv(), "plantilla.csv")
    assert result.grid.row_count == 11
    assert result.grid.rows[0] == ("Empleado", "Fecha Nacimiento", "Sueldo")
    assert result.grid.rows[1][0] == "Juan Pérez López"


def test_latin1_fallback():
    assert decode_text("Nómina".encode("latin-1")) == "Nómina"
    assert decode_text("﻿Nómina".encode("utf-8")) == "Nómina"


def test_grid_from_text_splits_on_wide_spacing():
    grid = grid_from_text("Nombre      Sueldo\nJuan Pérez  18000\n\nAna Ruiz\t22500")
    assert grid.rows[0] == ("Nombre", "Sueldo")
    assert grid.rows[1] == ("Juan Pérez", "18000")
    assert grid.rows[2] == ()
    assert grid.rows[3] == ("Ana Ruiz", "22500")


def test_spreadsheet_picks_census_sheet():
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame([["Comentarios"], ["Archivo enviado por RH"]]).to_excel(
            writer, sheet_name="Notas", index=False, header=False
        )
        pd.DataFrame(census_rows()).to_excel(writer, sheet_name="Plantilla", index=False, header=False)

    result = SpreadsheetExtractor().extract(buffer.getvalue(), "plantilla.xlsx")

    assert "Plantilla" in result.method
    assert result.grid.row_count == 11
    assert result.grid.rows[0] == ("Empleado", "Fecha Nacimiento", "Sueldo")
    assert result.grid.rows[1][2] == 18000


def test_corrupt_spreadsheet_raises():
    with pytest.raises(ExtractionError):
        SpreadsheetExtractor().extract(b"PK\x03\x04 not really a zip", "broken.xlsx")


def test_corrupt_pdf_raises():
    with pytest.raises(ExtractionError):
        PortableDocumentExtractor().extract(b"%PDF-1.7 truncated", "broken.pdf")


def test_image_without_ocr_raises():
    with pytest.raises(ExtractionError):
        RasterImageExtractor().extract(b"\x89PNG", "scan.png")


def test_image_with_injected_ocr():
    extractor = RasterImageExtractor(ocr=lambda content: "Nombre    Sueldo\nJuan Pérez    18000")
    result = extractor.extract(b"\x89PNG", "scan.png")
    assert result.low_fidelity is True
    assert result.grid.rows[1] == ("Juan Pérez", "18000")


def test_registry_lookup_and_registration():
    registry = ExtractorRegistry()
    assert isinstance(registry.get(SourceKind.DELIMITED_TEXT), DelimitedTextExtractor)
    with pytest.raises(UnsupportedFileError):
        registry.get(SourceKind.UNKNOWN)

    ocr_extractor = RasterImageExtractor(ocr=lambda content: "")
    registry.register(SourceKind.RASTER_IMAGE, ocr_extractor)
    assert registry.get(SourceKind.RASTER_IMAGE) is ocr_extractor


def test_ods_spreadsheet():
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="odf") as writer:
        pd.DataFrame(census_rows()).to_excel(writer, sheet_name="Plantilla", index=False, header=False)

    result = SpreadsheetExtractor().extract(buffer.getvalue(), "plantilla.ods")

    assert result.grid.row_count == 11
    assert result.grid.rows[0] == ("Empleado", "Fecha Nacimiento", "Sueldo")
    assert result.grid.rows[1][0] == "Juan Pérez López"
