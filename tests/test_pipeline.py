import logging

import pytest

from census_intake.constants import SourceKind, TablePurpose
from census_intake.exceptions import EmptyGridError, ExtractionError, UnsupportedFileError
from census_intake.models.grid import RawGrid
from census_intake.pipeline import CensusIngestionPipeline

from conftest import census_csv, census_rows


def test_process_csv_file(pipeline):
    processed = pipeline.process_file("plantilla.csv", census_csv(), "text/csv")

    assert processed.source_kind == SourceKind.DELIMITED_TEXT
    assert processed.format_assessment.primary_format == "delimited_table"
    assert processed.metadata.file_size == len(census_csv())
    assert processed.metadata.low_fidelity is False
    assert len(processed.structure.tables) == 1
    assert processed.mapping.get(TablePurpose.ACTIVE_PERSONNEL) is not None
    critical = [q for q in processed.questions if q.is_critical]
    assert [q.id for q in critical] == ["missing_active_personnel_hire_date"]


def test_stage_events_are_logged(pipeline, caplog):
    with caplog.at_level(logging.INFO, logger="census_intake.events"):
        pipeline.process_file("plantilla.csv", census_csv())

    stages = [
        r.census_event["stage"] for r in caplog.records if hasattr(r, "census_event")
    ]
    assert stages == [
        "format_detection",
        "extraction",
        "format_characteristics",
        "structure_analysis",
        "column_mapping",
        "question_generation",
    ]


def test_empty_file_raises(pipeline):
    with pytest.raises(EmptyGridError):
        pipeline.process_file("plantilla.csv", b"")
    with pytest.raises(EmptyGridError):
        pipeline.process_file("plantilla.csv", b"\n\n,,\n")


def test_unrecognized_file_raises(pipeline):
    with pytest.raises(UnsupportedFileError):
        pipeline.process_file("data.bin", b"\x00\x01\x02\x03" * 50)


def test_process_grid_is_deterministic(pipeline, census_grid):
    first = pipeline.process_grid(census_grid).to_dict()
    second = pipeline.process_grid(census_grid).to_dict()
    first["metadata"].pop("processing_time_ms")
    second["metadata"].pop("processing_time_ms")
    assert first == second


def test_to_dict_includes_grid_on_request(pipeline, census_grid):
    result = pipeline.process_grid(census_grid, file_name="plantilla.xlsx").to_dict(include_grid=True)
    assert result["grid"][0] == ["Empleado", "Fecha Nacimiento", "Sueldo"]
    assert result["file"]["name"] == "plantilla.xlsx"


def test_custom_catalogue_path(tmp_path, app_config):
    catalogue = tmp_path / "fields.yaml"
    catalogue.write_text(
        "active_personnel:\n"
        "  - name: employee_name\n"
        "    display_name: Employee name\n"
        "    priority: 10\n"
        "    data_type: name\n"
        "    validator: person_name\n"
        "    synonyms: [nombre, empleado]\n"
        "terminations:\n"
        "  - name: employee_name\n"
        "    display_name: Employee name\n"
        "    priority: 10\n"
        "    data_type: name\n"
        "    validator: person_name\n",
        encoding="utf-8",
    )
    app_config.field_catalogue_path = str(catalogue)

    processed = CensusIngestionPipeline(app_config).process_grid(RawGrid.from_rows(census_rows()))

    assert list(processed.mapping.get(TablePurpose.ACTIVE_PERSONNEL).field_mappings) == ["employee_name"]


def test_unreadable_legacy_spreadsheet_is_an_ingestion_error(pipeline):
    content = bytes.fromhex("D0CF11E0A1B11AE1") + b"\0" * 600
    with pytest.raises(ExtractionError):
        pipeline.process_file("plantilla.xls", content, "application/vnd.ms-excel")
