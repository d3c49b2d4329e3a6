import json

import pytest

from census_intake.constants import AmbiguityKind, DetectedType, TablePurpose
from census_intake.exceptions import CatalogueError
from census_intake.mapping.catalogue import get_default_catalogue, load_catalogue
from census_intake.mapping.classifier import ColumnFieldClassifier
from census_intake.mapping.mapper import ColumnMapper
from census_intake.models.structure import DetectedColumn
from census_intake.structure.analyzer import StructureAnalyzer
from census_intake.utils.scoring_config import load_scoring_config


def _active(grid):
    structure = StructureAnalyzer().analyze(grid)
    return structure, ColumnMapper().map_structure(structure)


def test_default_catalogue_required_fields():
    catalogue = get_default_catalogue()
    required = {f.name for f in catalogue.required_fields(TablePurpose.ACTIVE_PERSONNEL, 8)}
    assert required == {"employee_name", "hire_date", "birth_date", "base_salary"}
    terminations = {f.name for f in catalogue.required_fields(TablePurpose.TERMINATIONS, 8)}
    assert {"employee_name", "termination_date", "termination_cause"} <= terminations


def test_catalogue_rejects_unknown_validator(tmp_path):
    path = tmp_path / "fields.yaml"
    path.write_text(
        "active_personnel:\n"
        "  - {name: employee_name, data_type: name, validator: passport, priority: 10}\n"
        "terminations: []\n",
        encoding="utf-8",
    )
    with pytest.raises(CatalogueError):
        load_catalogue(path)


def test_scoring_overrides_from_yaml(tmp_path):
    path = tmp_path / "scoring.yaml"
    path.write_text("mapping_floor: 0.7\nsalary_floor: 500\n", encoding="utf-8")
    scoring = load_scoring_config(path)
    assert scoring.mapping_floor == 0.7
    assert scoring.salary_floor == 500
    assert scoring.required_priority_cutoff == 8

    path.write_text("no_such_weight: 1\n", encoding="utf-8")
    with pytest.raises(CatalogueError):
        load_scoring_config(path)


def test_name_similarity_tiers():
    classifier = ColumnFieldClassifier()
    catalogue = classifier.catalogue
    base_salary = catalogue.get(TablePurpose.ACTIVE_PERSONNEL, "base_salary")
    birth_date = catalogue.get(TablePurpose.ACTIVE_PERSONNEL, "birth_date")
    assert classifier.name_similarity("Sueldo", base_salary) == 1.0
    assert classifier.name_similarity("Sueldo Mensual Bruto", base_salary) == 0.8
    assert classifier.name_similarity("Fecha de pago", birth_date) == 0.6
    assert classifier.name_similarity("Observaciones", birth_date) == 0.0


def test_empty_column_is_never_mapped():
    column = DetectedColumn(index=0, header="Sueldo", detected_type=DetectedType.UNKNOWN, confidence=0.0)
    result = ColumnFieldClassifier().classify(column, TablePurpose.ACTIVE_PERSONNEL, TablePurpose.OTHER)
    assert result.best_field is None


def test_census_grid_maps_three_columns(census_grid):
    _, result = _active(census_grid)
    assert list(result.purposes) == [TablePurpose.ACTIVE_PERSONNEL]
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    assert mapping.assignments == {0: "employee_name", 1: "birth_date", 2: "base_salary"}
    assert mapping.classification(0).confidence == pytest.approx(0.99)
    assert [m.field_name for m in mapping.missing_required()] == ["hire_date"]
    assert mapping.field_mappings["hire_date"].alternatives == [1]
    assert mapping.ambiguities == []
    assert 0 < result.overall_confidence <= 1


def test_mapping_is_idempotent(census_grid):
    structure = StructureAnalyzer().analyze(census_grid)
    mapper = ColumnMapper()
    first = json.dumps(mapper.map_structure(structure).to_dict(), sort_keys=True)
    second = json.dumps(mapper.map_structure(structure).to_dict(), sort_keys=True)
    assert first == second


def test_field_claimed_by_two_columns_is_ambiguous(conflict_grid):
    _, result = _active(conflict_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    assert mapping.classification(1).score_for("employee_code") > 0.6
    assert mapping.classification(2).score_for("employee_code") > 0.6

    conflicts = [a for a in mapping.ambiguities if a.kind == AmbiguityKind.FIELD_CONFLICT]
    assert len(conflicts) == 1
    assert conflicts[0].fields == ["employee_code"]
    assert conflicts[0].columns == [1, 2]


def test_resolving_a_conflict_keeps_only_the_chosen_column(conflict_grid):
    _, result = _active(conflict_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    mapper = ColumnMapper()

    mapper.resolve_field_conflict(mapping, "employee_code", 2)

    assert mapping.ambiguities == []
    assert mapping.field_mappings["employee_code"].mapped_columns == [2]
    assert mapping.assignments[1] is None
    assert 1 in mapping.unmapped_columns


def test_human_assignment_releases_machine_holders(census_grid):
    _, result = _active(census_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    mapper = ColumnMapper()

    mapper.assign_column(mapping, 1, "hire_date")

    assert mapping.field_mappings["hire_date"].mapped_columns == [1]
    assert [m.field_name for m in mapping.missing_required()] == ["birth_date"]
    with pytest.raises(ValueError):
        mapper.assign_column(mapping, 9, "hire_date")
    with pytest.raises(ValueError):
        mapper.assign_column(mapping, 0, "shoe_size")


def test_acknowledged_missing_field_is_no_longer_missing(census_grid):
    _, result = _active(census_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    ColumnMapper().acknowledge_missing(mapping, "hire_date")
    assert mapping.missing_required() == []
    assert mapping.field_mappings["hire_date"].acknowledged_missing is True


def test_convert_rows_keys_by_field_and_header(census_grid):
    structure, result = _active(census_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    records = ColumnMapper().convert_rows(structure.tables[0], mapping)
    assert len(records) == 10
    assert records[0]["employee_name"] == "Juan Pérez López"
    assert records[0]["Empleado"] == "Juan Pérez López"
    assert records[0]["base_salary"] == 18000


def test_no_employee_table_requires_interpretation():
    from census_intake.models.grid import RawGrid

    grid = RawGrid.from_rows([["Producto", "Color"]] + [[f"Item {i}", "rojo"] for i in range(6)])
    structure = StructureAnalyzer().analyze(grid)
    result = ColumnMapper().map_structure(structure)
    assert result.purposes == {}
    assert result.table_interpretation_required is True
    assert result.candidate_table_index == 0


def test_convert_rows_keeps_columns_with_repeated_headers():
    from census_intake.models.grid import RawGrid
    from conftest import census_rows

    rows = census_rows()
    rows[0] = rows[0] + ["Observaciones", "Observaciones"]
    for i, row in enumerate(rows[1:]):
        row.extend([f"nota {i}", f"revisar {i}"])
    structure = StructureAnalyzer().analyze(RawGrid.from_rows(rows))
    table = structure.tables[0]
    mapper = ColumnMapper()

    records = mapper.convert_rows(table, mapper.map_table(table, TablePurpose.ACTIVE_PERSONNEL))

    assert records[0]["Observaciones"] == "nota 0"
    assert records[0]["Observaciones (2)"] == "revisar 0"
    assert records[0]["Empleado"] == "Juan Pérez López"


def ambiguous_date_mapping(census_grid):
    """Census mapping whose birth-date column is re-scored as an undecided "Fecha" column."""
    from census_intake.models.mapping import ColumnClassification

    structure, result = _active(census_grid)
    mapping = result.get(TablePurpose.ACTIVE_PERSONNEL)
    mapping.classifications[1] = ColumnClassification(
        column_index=1,
        header="Fecha",
        best_field="hire_date",
        confidence=0.55,
        scores=[("hire_date", 0.55), ("birth_date", 0.5)],
    )
    mapping.assignments[1] = "hire_date"
    return structure, result, mapping


def test_low_scoring_column_with_shared_keyword_is_ambiguous(census_grid):
    _, _, mapping = ambiguous_date_mapping(census_grid)
    mapper = ColumnMapper()

    mapper.rebuild(mapping)

    column_ambiguities = [a for a in mapping.ambiguities if a.kind == AmbiguityKind.COLUMN_AMBIGUITY]
    assert len(column_ambiguities) == 1
    assert column_ambiguities[0].columns == [1]
    assert column_ambiguities[0].fields == ["hire_date", "birth_date"]

    mapper.assign_column(mapping, 1, "birth_date")

    assert mapping.ambiguities == []
    assert mapping.field_mappings["birth_date"].mapped_columns == [1]
    assert [m.field_name for m in mapping.missing_required()] == ["hire_date"]
