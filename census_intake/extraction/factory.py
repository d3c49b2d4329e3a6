"""Grid extractor factory."""

from typing import Dict

from census_intake.constants import SourceKind
from census_intake.exceptions import UnsupportedFileError
from census_intake.extraction.base import GridExtractor
from census_intake.extraction.delimited import DelimitedTextExtractor
from census_intake.extraction.document import PortableDocumentExtractor, RasterImageExtractor
from census_intake.extraction.spreadsheet import SpreadsheetExtractor
from census_intake.extraction.text import PlainTextExtractor


def default_extractors() -> Dict[SourceKind, GridExtractor]:
    return {
        SourceKind.TABULAR_SPREADSHEET: SpreadsheetExtractor(),
        SourceKind.DELIMITED_TEXT: DelimitedTextExtractor(),
        SourceKind.PORTABLE_DOCUMENT: PortableDocumentExtractor(),
        SourceKind.RASTER_IMAGE: RasterImageExtractor(),
        SourceKind.PLAIN_TEXT: PlainTextExtractor(),
    }


class ExtractorRegistry:
    """One extractor per source kind; replacements can be registered (e.g. an OCR-backed one)."""

    def __init__(self, extractors: Dict[SourceKind, GridExtractor] = None):
        self._extractors = dict(extractors) if extractors is not None else default_extractors()

    def register(self, kind: SourceKind, extractor: GridExtractor) -> None:
        self._extractors[kind] = extractor

    def get(self, kind: SourceKind) -> GridExtractor:
        """
        Get the extractor for a source kind.

        Raises:
            UnsupportedFileError: If the kind is unknown or has no extractor
        """
        extractor = self._extractors.get(kind)
        if extractor is None:
            raise UnsupportedFileError(
                f"No grid extractor for file kind '{kind.value}'. "
                "Supported: spreadsheet, CSV, PDF, image (with OCR) and plain text files"
            )
        return extractor
