from census_intake.constants import SourceKind
from census_intake.detection.format_characteristics import FormatCharacteristicsClassifier
from census_intake.detection.format_signature import FormatSignatureDetector
from census_intake.models.grid import RawGrid

from conftest import census_rows


def test_extension_and_media_type_take_precedence():
    detector = FormatSignatureDetector()
    assert detector.detect("plantilla.xlsx") == SourceKind.TABULAR_SPREADSHEET
    assert detector.detect("report.csv", None, b"%PDF-1.7") == SourceKind.DELIMITED_TEXT
    assert detector.detect("upload", "application/pdf") == SourceKind.PORTABLE_DOCUMENT
    assert detector.detect("scan", "image/png") == SourceKind.RASTER_IMAGE


def test_byte_signatures():
    detector = FormatSignatureDetector()
    assert detector.detect("upload", None, b"PK\x03\x04rest") == SourceKind.TABULAR_SPREADSHEET
    assert detector.detect("upload", None, b"%PDF-1.7\n") == SourceKind.PORTABLE_DOCUMENT
    assert detector.detect("upload", None, bytes.fromhex("89504E470D0A1A0A")) == SourceKind.RASTER_IMAGE


def test_text_sniffing():
    detector = FormatSignatureDetector()
    assert detector.detect("upload", None, b"a;b;c\n1;2;3\n4;5;6\n") == SourceKind.DELIMITED_TEXT
    assert detector.detect("upload", None, b"hello world\nsecond line\n") == SourceKind.PLAIN_TEXT


def test_binary_junk_is_unknown():
    detector = FormatSignatureDetector()
    assert detector.detect("data.bin", None, b"\x00\x01\x02\x03" * 50) == SourceKind.UNKNOWN
    assert detector.detect(None) == SourceKind.UNKNOWN


def test_clean_spreadsheet_is_structured(census_grid):
    assessment = FormatCharacteristicsClassifier().classify(census_grid, SourceKind.TABULAR_SPREADSHEET)
    assert assessment.primary_format == "structured_spreadsheet"
    assert assessment.confidence >= 0.85
    assert assessment.characteristics.has_headers is True
    assert assessment.characteristics.data_quality == "high"
    assert assessment.characteristics.estimated_records == 10
    assert assessment.strategy.method == "structured_spreadsheet_processing"


def test_low_fidelity_caps_confidence(census_grid):
    assessment = FormatCharacteristicsClassifier().classify(
        census_grid, SourceKind.TABULAR_SPREADSHEET, low_fidelity=True, confidence_ceiling=0.7
    )
    assert assessment.confidence == 0.7


def test_blank_row_runs_mark_multiple_tables():
    rows = census_rows(5) + [[], [], []] + census_rows(5)
    characteristics = FormatCharacteristicsClassifier().characteristics(RawGrid.from_rows(rows))
    assert characteristics.has_multiple_tables is True

    single = FormatCharacteristicsClassifier().characteristics(RawGrid.from_rows(census_rows(10)))
    assert single.has_multiple_tables is False


def test_unknown_kind_has_manual_strategy(census_grid):
    assessment = FormatCharacteristicsClassifier().classify(census_grid, SourceKind.UNKNOWN)
    assert assessment.primary_format == "unknown"
    assert assessment.strategy.method == "manual_analysis"
