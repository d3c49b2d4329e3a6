"""Semantic type definitions and content validators for census columns.

The validators are shared by column type inference and by field classification.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from census_intake.constants import CellKind, SemanticType
from census_intake.models.grid import Cell, cell_kind, cell_text, parse_amount
from census_intake.utils.scoring_config import DEFAULT_SCORING, ScoringConfig
from census_intake.utils.text import fold

_LETTERS = "A-Za-zÁÉÍÓÚÜÑáéíóúüñ"

RFC_PATTERN = re.compile(r"^[A-Z&Ñ]{3,4}\d{6}[A-V1-9][A-Z1-9][0-9A]$")
CURP_PATTERN = re.compile(r"^[A-Z]{4}\d{6}[HM][A-Z]{5}[0-9A]\d$")
NSS_PATTERNS = (re.compile(r"^\d{10,11}$"), re.compile(r"^\d{2}-\d{2}-\d{2}-\d{5}$"))

DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")

GENDER_VALUES = {"m", "h", "f", "masculino", "femenino", "hombre", "mujer", "male", "female"}


@dataclass(frozen=True)
class SemanticTypeDefinition:
    semantic_type: SemanticType
    keywords: Tuple[str, ...]
    patterns: Tuple[Pattern, ...]
    validator: str


SEMANTIC_TYPES: List[SemanticTypeDefinition] = [
    SemanticTypeDefinition(
        SemanticType.PERSON_NAME,
        ("nombre", "name", "empleado", "trabajador", "persona", "colaborador"),
        (
            re.compile(rf"^[A-ZÁÉÍÓÚÑ][a-záéíóúüñ]+(\s+[A-ZÁÉÍÓÚÑ][a-záéíóúüñ]+)+$"),
            re.compile(r"^[A-ZÁÉÍÓÚÜÑ]+(\s+[A-ZÁÉÍÓÚÜÑ]+)+$"),
        ),
        "person_name",
    ),
    SemanticTypeDefinition(
        SemanticType.TAX_ID,
        ("rfc", "registro federal"),
        (RFC_PATTERN,),
        "rfc",
    ),
    SemanticTypeDefinition(
        SemanticType.POPULATION_ID,
        ("curp", "clave unica", "registro poblacion"),
        (CURP_PATTERN,),
        "curp",
    ),
    SemanticTypeDefinition(
        SemanticType.SOCIAL_SECURITY,
        ("nss", "imss", "seguro social", "numero seguridad"),
        NSS_PATTERNS,
        "nss",
    ),
    SemanticTypeDefinition(
        SemanticType.SALARY,
        ("sueldo", "salario", "salary", "wage", "pago", "remuneracion", "base", "integrado"),
        (
            re.compile(r"^\$?\s?\d{1,3}(,\d{3})*(\.\d{1,2})?$"),
            re.compile(r"^\d{4,7}(\.\d{1,2})?$"),
        ),
        "salary",
    ),
    SemanticTypeDefinition(
        SemanticType.DATE,
        ("fecha", "date", "ingreso", "nacimiento", "baja", "terminacion", "alta"),
        (
            re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"),
            re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"),
            re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"),
            re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"),
        ),
        "date",
    ),
    SemanticTypeDefinition(
        SemanticType.GENDER,
        ("sexo", "genero", "gender", "sex"),
        (
            re.compile(r"^[MHF]$"),
            re.compile(r"^(MASCULINO|FEMENINO|HOMBRE|MUJER)$", re.IGNORECASE),
        ),
        "gender",
    ),
    SemanticTypeDefinition(
        SemanticType.EMPLOYEE_CODE,
        ("codigo", "clave", "id", "numero empleado", "num empleado", "employee id", "folio", "matricula"),
        (re.compile(r"^[A-Z0-9]{3,10}$"), re.compile(r"^\d{3,8}$")),
        "employee_code",
    ),
]


def matches_any(patterns: Tuple[Pattern, ...], value: Cell) -> bool:
    text = cell_text(value)
    return bool(text) and any(p.match(text) for p in patterns)


def parse_date(value: Cell) -> Optional[date]:
    """Parse a date cell or date-shaped text. Returns None when not a date."""
    kind = cell_kind(value)
    if kind == CellKind.DATE:
        return value.date() if isinstance(value, datetime) else value
    if kind != CellKind.TEXT:
        return None
    text = value.strip()
    # datetimes rendered as text by some exporters
    text = text.split(" ")[0].split("T")[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def validate_salary(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    amount = parse_amount(value)
    if amount is None:
        return False
    return scoring.salary_floor <= amount <= scoring.salary_ceiling


def validate_person_name(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    if cell_kind(value) != CellKind.TEXT:
        return False
    text = value.strip()
    if not 3 <= len(text) <= 100:
        return False
    if not re.match(rf"^[{_LETTERS}\s\.'\-]+$", text):
        return False
    return len(text.split()) >= 2


def validate_rfc(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return bool(RFC_PATTERN.match(cell_text(value).upper()))


def validate_curp(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return bool(CURP_PATTERN.match(cell_text(value).upper()))


def validate_nss(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    digits = cell_text(value).replace("-", "")
    return digits.isdigit() and 10 <= len(digits) <= 11


def validate_employee_code(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return bool(re.match(r"^[A-Za-z0-9_\-]{3,15}$", cell_text(value)))


def validate_date(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return parse_date(value) is not None


def validate_gender(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return fold(cell_text(value)) in GENDER_VALUES


def validate_text(value: Cell, scoring: ScoringConfig = DEFAULT_SCORING) -> bool:
    return value is not None


VALIDATORS: Dict[str, Callable[[Cell, ScoringConfig], bool]] = {
    "person_name": validate_person_name,
    "rfc": validate_rfc,
    "curp": validate_curp,
    "nss": validate_nss,
    "salary": validate_salary,
    "amount": validate_salary,
    "date": validate_date,
    "gender": validate_gender,
    "employee_code": validate_employee_code,
    "text": validate_text,
}


def validator_for(name: str) -> Callable[[Cell, ScoringConfig], bool]:
    try:
        return VALIDATORS[name]
    except KeyError:
        raise KeyError(f"Unknown validator '{name}'. Must be one of: {sorted(VALIDATORS)}")


def match_fraction(values: List[Cell], predicate: Callable[[Cell], bool]) -> float:
    if not values:
        return 0.0
    return sum(1 for v in values if predicate(v)) / len(values)
