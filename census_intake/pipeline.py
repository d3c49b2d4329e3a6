"""Census File Ingestion Pipeline

Turns one uploaded census file into ProcessedFileData:
1. Format detection - classify the file kind from name, media type and leading bytes
2. Extraction - produce a raw grid (and free text) with the matching extractor
3. Format characteristics - primary format, confidence and processing strategy
4. Structure analysis - tables, typed columns, purposes and anomalies
5. Column mapping - standard field mapping per record purpose
6. Question generation - initial questions for the conversation
"""

import logging
from typing import Optional

from census_intake.config import AppConfig, get_config
from census_intake.constants import SourceKind
from census_intake.conversation.questions import QuestionGenerator
from census_intake.detection.format_characteristics import FormatCharacteristicsClassifier
from census_intake.detection.format_signature import FormatSignatureDetector
from census_intake.exceptions import EmptyGridError, UnsupportedFileError
from census_intake.extraction.factory import ExtractorRegistry
from census_intake.mapping.catalogue import FieldCatalogue, get_default_catalogue, load_catalogue
from census_intake.mapping.mapper import ColumnMapper
from census_intake.models.grid import RawGrid
from census_intake.models.processed import ExtractionMetadata, FileIdentity, ProcessedFileData
from census_intake.structure.analyzer import StructureAnalyzer
from census_intake.utils.events import log_stage_event, timed_stage

logger = logging.getLogger(__name__)


class CensusIngestionPipeline:
    """Pipeline that runs every per-file stage, from raw bytes to initial questions.

    Stages are pure per file; a pipeline instance can process files from
    several threads at once.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        extractors: Optional[ExtractorRegistry] = None,
        catalogue: Optional[FieldCatalogue] = None,
    ):
        """
        Initialize pipeline with all stages.

        Args:
            config: Application config (defaults to the global config)
            extractors: Extractor registry (defaults to the built-in extractors)
            catalogue: Standard field catalogue (defaults to FIELD_CATALOGUE_PATH or the bundled one)
        """
        self.config = config or get_config()
        self.scoring = self.config.scoring()
        if catalogue is None:
            catalogue = (
                load_catalogue(self.config.field_catalogue_path)
                if self.config.field_catalogue_path
                else get_default_catalogue()
            )
        self.catalogue = catalogue

        self.detector = FormatSignatureDetector(self.scoring, self.config.text_window_bytes)
        self.extractors = extractors or ExtractorRegistry()
        self.characteristics = FormatCharacteristicsClassifier(self.scoring)
        self.analyzer = StructureAnalyzer(self.scoring)
        self.mapper = ColumnMapper(self.catalogue, self.scoring)
        self.generator = QuestionGenerator(self.config.conversation)

    def process_file(
        self, file_name: str, content: bytes, media_type: Optional[str] = None
    ) -> ProcessedFileData:
        """
        Process one uploaded file.

        Args:
            file_name: Original file name
            content: Full file content
            media_type: Declared media type, if any

        Returns:
            ProcessedFileData with the initial questions

        Raises:
            UnsupportedFileError: If the file kind cannot be recognized
            ExtractionError: If the extractor cannot parse the content
            EmptyGridError: If the file holds no data
        """
        logger.info(f"Processing '{file_name}' ({len(content)} bytes, media type {media_type})")
        if not content:
            raise EmptyGridError(f"File '{file_name}' is empty")

        with timed_stage() as timer:
            kind = self.detector.detect(file_name, media_type, content[: self.config.text_window_bytes])
        log_stage_event("format_detection", timer.duration_ms, source_kind=kind.value)
        if kind == SourceKind.UNKNOWN:
            raise UnsupportedFileError(f"Could not recognize the format of '{file_name}'")

        extractor = self.extractors.get(kind)
        with timed_stage() as timer:
            extraction = extractor.extract(content, file_name)
        log_stage_event(
            "extraction",
            timer.duration_ms,
            rows=extraction.grid.row_count,
            width=extraction.grid.width,
            low_fidelity=extraction.low_fidelity,
        )

        return self.process_grid(
            extraction.grid,
            source_kind=kind,
            file_name=file_name,
            text=extraction.text,
            method=extraction.method,
            low_fidelity=extraction.low_fidelity,
            media_type=media_type,
            file_size=len(content),
            elapsed_ms=timer.duration_ms,
        )

    def process_grid(
        self,
        grid: RawGrid,
        source_kind: SourceKind = SourceKind.TABULAR_SPREADSHEET,
        file_name: str = "grid",
        text: Optional[str] = None,
        method: str = "Pre-extracted grid",
        low_fidelity: bool = False,
        media_type: Optional[str] = None,
        file_size: int = 0,
        elapsed_ms: float = 0.0,
    ) -> ProcessedFileData:
        """Run the stages after extraction on an already extracted grid."""
        if grid is None or grid.is_empty:
            raise EmptyGridError(f"No data found in '{file_name}'")
        ceiling = self.config.low_fidelity_ceiling if low_fidelity else 1.0
        total_ms = elapsed_ms

        with timed_stage() as timer:
            assessment = self.characteristics.classify(grid, source_kind, text, low_fidelity, ceiling)
        total_ms += timer.duration_ms
        log_stage_event(
            "format_characteristics",
            timer.duration_ms,
            confidence=assessment.confidence,
            primary_format=assessment.primary_format,
            estimated_records=assessment.characteristics.estimated_records,
        )

        with timed_stage() as timer:
            structure = self.analyzer.analyze(grid, ceiling)
        total_ms += timer.duration_ms
        log_stage_event(
            "structure_analysis",
            timer.duration_ms,
            confidence=structure.overall_confidence,
            tables=len(structure.tables),
            columns=sum(len(t.columns) for t in structure.tables),
            anomalies=len(structure.anomalies),
        )

        with timed_stage() as timer:
            mapping = self.mapper.map_structure(structure)
        total_ms += timer.duration_ms
        log_stage_event(
            "column_mapping",
            timer.duration_ms,
            confidence=mapping.overall_confidence,
            purposes=len(mapping.purposes),
            ambiguities=len(mapping.all_ambiguities()),
        )

        with timed_stage() as timer:
            questions = self.generator.initial_questions(source_kind, assessment, structure, mapping)
        total_ms += timer.duration_ms
        log_stage_event(
            "question_generation",
            timer.duration_ms,
            questions=len(questions),
            critical=sum(1 for q in questions if q.is_critical),
        )

        return ProcessedFileData(
            file=FileIdentity(name=file_name, media_type=media_type, size=file_size),
            source_kind=source_kind,
            format_assessment=assessment,
            structure=structure,
            mapping=mapping,
            grid=grid,
            metadata=ExtractionMetadata(
                file_name=file_name,
                file_size=file_size,
                declared_format=media_type,
                processing_time_ms=round(total_ms, 3),
                extraction_method=method,
                low_fidelity=low_fidelity,
            ),
            questions=questions,
            text=text,
        )
