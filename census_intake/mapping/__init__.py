"""Column to standard field mapping."""

from census_intake.mapping.catalogue import FieldCatalogue, FieldDefinition, get_default_catalogue, load_catalogue
from census_intake.mapping.classifier import ColumnFieldClassifier
from census_intake.mapping.mapper import ColumnMapper

__all__ = [
    "ColumnFieldClassifier",
    "ColumnMapper",
    "FieldCatalogue",
    "FieldDefinition",
    "get_default_catalogue",
    "load_catalogue",
]
