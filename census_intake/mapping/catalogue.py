"""
Standard Field Catalogue

Defines the standard fields every census column is ultimately mapped to, per
record purpose. The catalogue itself lives in ``standard_fields.yaml``.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from census_intake.constants import DetectedType, TablePurpose
from census_intake.exceptions import CatalogueError
from census_intake.structure.patterns import VALIDATORS

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE_PATH = Path(__file__).parent / "standard_fields.yaml"


@dataclass(frozen=True)
class FieldDefinition:
    """Definition of a standard field"""

    name: str
    display_name: str
    data_type: DetectedType
    validator: str
    priority: int
    synonyms: tuple = field(default_factory=tuple)
    expected: bool = False

    def is_required(self, cutoff: int) -> bool:
        return self.priority >= cutoff

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "data_type": self.data_type.value,
            "priority": self.priority,
            "synonyms": list(self.synonyms),
        }


class FieldCatalogue:
    """Ordered standard fields for each record purpose."""

    def __init__(self, fields_by_purpose: Dict[TablePurpose, List[FieldDefinition]]):
        self._fields = fields_by_purpose

    def fields_for(self, purpose: TablePurpose) -> List[FieldDefinition]:
        """Fields in declaration order. Unclassified tables use the active-personnel fields."""
        if purpose == TablePurpose.OTHER:
            purpose = TablePurpose.ACTIVE_PERSONNEL
        return list(self._fields.get(purpose, []))

    def get(self, purpose: TablePurpose, name: str) -> Optional[FieldDefinition]:
        for definition in self.fields_for(purpose):
            if definition.name == name:
                return definition
        return None

    def required_fields(self, purpose: TablePurpose, cutoff: int) -> List[FieldDefinition]:
        return [f for f in self.fields_for(purpose) if f.is_required(cutoff)]

    @property
    def purposes(self) -> List[TablePurpose]:
        return list(self._fields.keys())


def _parse_field(purpose: str, raw: dict) -> FieldDefinition:
    try:
        definition = FieldDefinition(
            name=raw["name"],
            display_name=raw.get("display_name", raw["name"]),
            data_type=DetectedType(raw["data_type"]),
            validator=raw.get("validator", "text"),
            priority=int(raw["priority"]),
            synonyms=tuple(raw.get("synonyms") or ()),
            expected=bool(raw.get("expected", False)),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise CatalogueError(f"Invalid field entry in '{purpose}': {raw!r} ({e})") from e

    if definition.validator not in VALIDATORS:
        raise CatalogueError(
            f"Unknown validator '{definition.validator}' for field '{definition.name}'. "
            f"Must be one of: {sorted(VALIDATORS)}"
        )
    return definition


def load_catalogue(path: Optional[Union[str, Path]] = None) -> FieldCatalogue:
    """
    Load a field catalogue from YAML.

    Args:
        path: Catalogue file; the bundled catalogue when None

    Returns:
        FieldCatalogue instance

    Raises:
        CatalogueError: If the file is missing or malformed
    """
    path = Path(path) if path else DEFAULT_CATALOGUE_PATH
    if not path.exists():
        raise CatalogueError(f"Field catalogue not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    fields_by_purpose: Dict[TablePurpose, List[FieldDefinition]] = {}
    for purpose_name, entries in raw.items():
        try:
            purpose = TablePurpose(purpose_name)
        except ValueError as e:
            raise CatalogueError(f"Unknown record purpose in catalogue: {purpose_name}") from e
        if not isinstance(entries, list):
            raise CatalogueError(f"Fields for '{purpose_name}' must be a list")
        definitions = [_parse_field(purpose_name, entry) for entry in entries]
        names = [d.name for d in definitions]
        if len(names) != len(set(names)):
            raise CatalogueError(f"Duplicate field names in '{purpose_name}'")
        fields_by_purpose[purpose] = definitions

    for required in (TablePurpose.ACTIVE_PERSONNEL, TablePurpose.TERMINATIONS):
        if required not in fields_by_purpose:
            raise CatalogueError(f"Catalogue is missing fields for '{required.value}'")

    logger.debug(f"Loaded field catalogue from {path}")
    return FieldCatalogue(fields_by_purpose)


@lru_cache()
def get_default_catalogue() -> FieldCatalogue:
    """Get the cached bundled catalogue."""
    return load_catalogue()
