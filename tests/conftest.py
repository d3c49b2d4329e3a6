import pytest

from census_intake.config import AppConfig, ConversationConfig
from census_intake.models.grid import RawGrid
from census_intake.pipeline import CensusIngestionPipeline

NAMES = [
    "Juan Pérez López",
    "María García Hernández",
    "Carlos Ramírez Soto",
    "Ana Martínez Ruiz",
    "Luis Torres Vega",
    "Sofía Morales Díaz",
    "Jorge Castillo Luna",
    "Laura Jiménez Ortiz",
    "Pedro Sánchez Mora",
    "Elena Flores Rivas",
]
BIRTH_DATES = [
    "15/03/1985", "02/11/1990", "23/07/1978", "30/01/1995", "11/09/1982",
    "05/05/1988", "19/12/1975", "08/04/1993", "27/06/1980", "14/02/1991",
]
SALARIES = [18000, 22500, 31000, 15800, 27000, 45000, 19500, 24000, 33500, 21000]


def census_rows(count=10):
    """Header plus plausible active-personnel rows (name, birth date, salary)."""
    rows = [["Empleado", "Fecha Nacimiento", "Sueldo"]]
    for i in range(count):
        rows.append([NAMES[i], BIRTH_DATES[i], SALARIES[i]])
    return rows


def census_csv(count=10) -> bytes:
    lines = [",".join(str(v) for v in row) for row in census_rows(count)]
    return ("\n".join(lines) + "\n").encode("utf-8")


def code_conflict_rows():
    """Two columns ("Clave", "Codigo") that both look like employee codes."""
    rows = [["Nombre", "Clave", "Codigo", "Fecha Ingreso", "Fecha Nacimiento", "Sueldo"]]
    for i in range(10):
        rows.append([
            NAMES[i],
            f"A{i + 1:03d}",
            f"B{i + 101}",
            f"{i + 1:02d}/01/2015",
            BIRTH_DATES[i],
            SALARIES[i],
        ])
    return rows


@pytest.fixture
def census_grid():
    return RawGrid.from_rows(census_rows())


@pytest.fixture
def conflict_grid():
    return RawGrid.from_rows(code_conflict_rows())


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def pipeline(app_config):
    return CensusIngestionPipeline(app_config)


@pytest.fixture
def strict_format_pipeline():
    """Pipeline that asks for format confirmation on every file."""
    config = AppConfig(conversation=ConversationConfig(format_confirmation_threshold=0.99))
    return CensusIngestionPipeline(config)
