"""File kind detection and format characterization."""

from census_intake.detection.format_characteristics import FormatCharacteristicsClassifier
from census_intake.detection.format_signature import FormatSignatureDetector

__all__ = ["FormatCharacteristicsClassifier", "FormatSignatureDetector"]
