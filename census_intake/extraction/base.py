"""Abstract grid extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from census_intake.models.grid import RawGrid


@dataclass
class ExtractionResult:
    grid: RawGrid
    method: str
    text: Optional[str] = None
    low_fidelity: bool = False


class GridExtractor(ABC):
    """Turns the bytes of a classified file into a raw grid."""

    low_fidelity: bool = False

    @abstractmethod
    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        """
        Extract a grid from file content.

        Args:
            content: Full file content
            file_name: Original file name, for messages and format hints

        Returns:
            ExtractionResult with the grid, optional free text and a short
            description of the extraction method

        Raises:
            ExtractionError: If the content cannot be parsed
        """
        pass
