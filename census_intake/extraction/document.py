"""Low-fidelity extractors for PDF documents and scanned images."""

import io
import logging
from typing import Callable, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from census_intake.exceptions import ExtractionError
from census_intake.extraction.base import ExtractionResult, GridExtractor
from census_intake.extraction.text import grid_from_text

logger = logging.getLogger(__name__)

OcrFunction = Callable[[bytes], str]


class PortableDocumentExtractor(GridExtractor):
    """Text layer of a PDF, split into cells on wide spacing."""

    low_fidelity = True

    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        try:
            reader = PdfReader(io.BytesIO(content))
            pages = [(page.extract_text(extraction_mode="layout") or "") for page in reader.pages]
        except (PdfReadError, ValueError, OSError) as e:
            raise ExtractionError(f"Failed to read PDF '{file_name}': {e}") from e

        # blank line pairs between pages keep page tables apart
        text = "\n\n\n".join(p.strip("\n") for p in pages)
        if not text.strip():
            raise ExtractionError(
                f"PDF '{file_name}' has no text layer; it may be scanned and needs OCR"
            )

        grid = grid_from_text(text)
        logger.info(f"Extracted {grid.row_count} text lines from {len(pages)} PDF page(s) of '{file_name}'")
        return ExtractionResult(
            grid=grid,
            text=text,
            method=f"PDF text layer, columns inferred from spacing ({len(pages)} pages, low fidelity)",
            low_fidelity=True,
        )


class RasterImageExtractor(GridExtractor):
    """Scanned images go through an injected OCR function."""

    low_fidelity = True

    def __init__(self, ocr: Optional[OcrFunction] = None):
        self.ocr = ocr

    def extract(self, content: bytes, file_name: str = "") -> ExtractionResult:
        if self.ocr is None:
            raise ExtractionError(
                f"Image '{file_name}' requires an OCR engine; none is configured"
            )
        text = self.ocr(content)
        grid = grid_from_text(text or "")
        return ExtractionResult(
            grid=grid,
            text=text,
            method="OCR text, columns inferred from spacing (low fidelity)",
            low_fidelity=True,
        )
