"""Pipeline output models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from census_intake.constants import SourceKind
from census_intake.models.conversation import ConversationalQuestion
from census_intake.models.grid import RawGrid
from census_intake.models.mapping import CensusMappingResult
from census_intake.models.structure import StructureAnalysis


@dataclass(frozen=True)
class FileIdentity:
    name: str
    media_type: Optional[str]
    size: int


@dataclass
class FormatCharacteristics:
    has_headers: bool
    structural_consistency: float
    data_quality: str
    has_multiple_tables: bool
    estimated_records: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_headers": self.has_headers,
            "structural_consistency": self.structural_consistency,
            "data_quality": self.data_quality,
            "has_multiple_tables": self.has_multiple_tables,
            "estimated_records": self.estimated_records,
        }


@dataclass
class ProcessingStrategy:
    """Advisory descriptor for operators; the mapping logic never reads it."""

    method: str
    priority: int
    challenges: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "priority": self.priority,
            "challenges": list(self.challenges),
            "suggestions": list(self.suggestions),
        }


@dataclass
class FormatAssessment:
    primary_format: str
    confidence: float
    characteristics: FormatCharacteristics
    strategy: ProcessingStrategy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_format": self.primary_format,
            "confidence": self.confidence,
            "characteristics": self.characteristics.to_dict(),
            "strategy": self.strategy.to_dict(),
        }


@dataclass
class ExtractionMetadata:
    file_name: str
    file_size: int
    declared_format: Optional[str]
    processing_time_ms: float
    extraction_method: str
    low_fidelity: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "file_size": self.file_size,
            "declared_format": self.declared_format,
            "processing_time_ms": self.processing_time_ms,
            "extraction_method": self.extraction_method,
            "low_fidelity": self.low_fidelity,
        }


@dataclass
class ProcessedFileData:
    file: FileIdentity
    source_kind: SourceKind
    format_assessment: FormatAssessment
    structure: StructureAnalysis
    mapping: CensusMappingResult
    grid: RawGrid
    metadata: ExtractionMetadata
    questions: List[ConversationalQuestion] = field(default_factory=list)
    text: Optional[str] = None

    def to_dict(self, include_grid: bool = False) -> Dict[str, Any]:
        result = {
            "file": {"name": self.file.name, "media_type": self.file.media_type, "size": self.file.size},
            "source_kind": self.source_kind.value,
            "format": self.format_assessment.to_dict(),
            "structure": self.structure.to_dict(),
            "mapping": self.mapping.to_dict(),
            "metadata": self.metadata.to_dict(),
            "questions": [q.to_dict() for q in self.questions],
        }
        if include_grid:
            result["grid"] = self.grid.to_lists()
        return result
