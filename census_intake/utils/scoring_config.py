"""Weights and thresholds for structural analysis and column mapping."""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from census_intake.exceptions import CatalogueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringConfig:
    """Configuration for heuristic scoring."""

    # Column type inference signal weights
    type_name_weight: float = 0.3
    type_pattern_weight: float = 0.4
    type_validator_weight: float = 0.3
    max_sample_values: int = 20
    pattern_sample_size: int = 10

    # Table segmentation and header detection
    empty_rows_to_split: int = 2
    header_search_rows: int = 5
    preview_rows: int = 5

    # Data quality
    missing_rate_threshold: float = 0.2
    short_name_length: int = 5
    short_name_rate_threshold: float = 0.1

    # Salary magnitude band
    salary_floor: float = 1000.0
    salary_ceiling: float = 1_000_000.0

    # Table purpose thresholds
    active_purpose_threshold: float = 2.0
    termination_purpose_threshold: float = 3.0

    # Anomalies
    min_table_rows: int = 5
    low_column_confidence: float = 0.5

    # Field classification weights
    name_similarity_weight: float = 0.4
    type_compatibility_weight: float = 0.3
    content_weight: float = 0.2
    context_weight: float = 0.1

    # Name similarity tiers
    exact_match_score: float = 1.0
    containment_score: float = 0.8
    shared_word_score: float = 0.6
    type_match_score: float = 1.0
    type_mismatch_score: float = 0.2

    # Context adjustment
    expected_context_score: float = 1.0
    unexpected_context_score: float = 0.8
    neutral_context_score: float = 0.9

    # Mapping thresholds
    required_priority_cutoff: int = 8
    mapping_floor: float = 0.6
    ambiguity_threshold: float = 0.6
    near_miss_threshold: float = 0.45
    max_alternatives: int = 5
    employee_likeness_threshold: float = 0.6

    # Confidence rollup
    column_confidence_weight: float = 0.7
    required_coverage_weight: float = 0.3

    # Format characteristics
    header_width_ratio: float = 0.6
    quality_sample_rows: int = 10
    multiple_table_empty_rows: int = 3
    multiple_table_min_rows: int = 10
    record_row_ratio: float = 0.3
    delimiter_density: float = 2.0
    printable_ratio: float = 0.8


# Global default configuration
DEFAULT_SCORING = ScoringConfig()


def load_scoring_config(path: Optional[Union[str, Path]] = None) -> ScoringConfig:
    """
    Load scoring overrides from a YAML file.

    Keys not present in the file keep their default values.

    Args:
        path: Path to a YAML mapping of field name to value. None returns the defaults.

    Returns:
        ScoringConfig instance

    Raises:
        CatalogueError: If the file is missing or names unknown settings
    """
    if path is None:
        return DEFAULT_SCORING

    path = Path(path)
    if not path.exists():
        raise CatalogueError(f"Scoring config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise CatalogueError(f"Scoring config must be a mapping: {path}")

    known = {f.name for f in dataclasses.fields(ScoringConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise CatalogueError(f"Unknown scoring settings in {path}: {sorted(unknown)}")

    logger.info(f"Loaded {len(overrides)} scoring overrides from {path}")
    return dataclasses.replace(DEFAULT_SCORING, **overrides)
