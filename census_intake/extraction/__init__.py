"""Grid extraction from concrete file formats."""

from census_intake.extraction.base import ExtractionResult, GridExtractor
from census_intake.extraction.factory import ExtractorRegistry

__all__ = ["ExtractionResult", "ExtractorRegistry", "GridExtractor"]
