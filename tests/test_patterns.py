from datetime import date, datetime

import pytest

from census_intake.structure.patterns import (
    parse_date,
    validate_curp,
    validate_employee_code,
    validate_gender,
    validate_nss,
    validate_person_name,
    validate_rfc,
    validate_salary,
    validator_for,
)
from census_intake.utils.scoring_config import ScoringConfig


@pytest.mark.parametrize("value", ["$25,000.00", 25000, "25000.50"])
def test_salary_accepts_plausible_amounts(value):
    assert validate_salary(value) is True


@pytest.mark.parametrize("value", ["N/A", -500, 50, None, "2,000,000"])
def test_salary_rejects_implausible_amounts(value):
    assert validate_salary(value) is False


def test_salary_floor_comes_from_scoring_config():
    assert validate_salary(500, ScoringConfig(salary_floor=100)) is True


def test_person_name_needs_two_words():
    assert validate_person_name("Juan Pérez") is True
    assert validate_person_name("Juan") is False
    assert validate_person_name("J. 123") is False
    assert validate_person_name(25000) is False


def test_identifier_validators():
    assert validate_rfc("PELJ850315AB1") is True
    assert validate_rfc("not an rfc") is False
    assert validate_curp("PELJ850315HDFRPN09") is True
    assert validate_nss("12-34-56-78901") is True
    assert validate_nss("1234") is False
    assert validate_employee_code("EMP-001") is True
    assert validate_employee_code("x") is False


def test_gender_values_are_folded():
    assert validate_gender("Femenino") is True
    assert validate_gender("H") is True
    assert validate_gender("otro") is False


def test_parse_date_handles_cells_and_text():
    assert parse_date("15/03/1985") == date(1985, 3, 15)
    assert parse_date("1985-03-15T00:00:00") == date(1985, 3, 15)
    assert parse_date(datetime(2020, 1, 2, 0, 0)) == date(2020, 1, 2)
    assert parse_date(31000) is None
    assert parse_date("mañana") is None


def test_unknown_validator_name_raises():
    with pytest.raises(KeyError):
        validator_for("iban")
