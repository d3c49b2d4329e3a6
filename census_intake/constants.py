"""Constants and enumerations for census ingestion."""

from enum import Enum


class SourceKind(str, Enum):
    """File kinds recognized by format signature detection."""
    TABULAR_SPREADSHEET = "tabular_spreadsheet"
    DELIMITED_TEXT = "delimited_text"
    PORTABLE_DOCUMENT = "portable_document"
    RASTER_IMAGE = "raster_image"
    PLAIN_TEXT = "plain_text"
    UNKNOWN = "unknown"


class CellKind(str, Enum):
    """Closed set of scalar cell kinds."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    EMPTY = "empty"


class DetectedType(str, Enum):
    """Primitive type inferred for a column."""
    NAME = "name"
    IDENTIFIER = "identifier"
    DATE = "date"
    NUMBER = "number"
    TEXT = "text"
    UNKNOWN = "unknown"


class SemanticType(str, Enum):
    """Candidate semantic types scored during column inference.

    Declaration order is the tie-break order.
    """
    PERSON_NAME = "person_name"
    TAX_ID = "tax_id"
    POPULATION_ID = "population_id"
    SOCIAL_SECURITY = "social_security"
    SALARY = "salary"
    DATE = "date"
    GENDER = "gender"
    EMPLOYEE_CODE = "employee_code"


SEMANTIC_TO_DETECTED = {
    SemanticType.PERSON_NAME: DetectedType.NAME,
    SemanticType.TAX_ID: DetectedType.IDENTIFIER,
    SemanticType.POPULATION_ID: DetectedType.IDENTIFIER,
    SemanticType.SOCIAL_SECURITY: DetectedType.IDENTIFIER,
    SemanticType.SALARY: DetectedType.NUMBER,
    SemanticType.DATE: DetectedType.DATE,
    SemanticType.GENDER: DetectedType.TEXT,
    SemanticType.EMPLOYEE_CODE: DetectedType.IDENTIFIER,
}


class TablePurpose(str, Enum):
    """Record purpose of a detected table."""
    ACTIVE_PERSONNEL = "active_personnel"
    TERMINATIONS = "terminations"
    OTHER = "other"


class AnomalyKind(str, Enum):
    SMALL_TABLE = "small_table"
    LOW_CONFIDENCE_COLUMN = "low_confidence_column"
    NO_IDENTIFIABLE_COLUMNS = "no_identifiable_columns"


class AmbiguityKind(str, Enum):
    FIELD_CONFLICT = "field_conflict"
    COLUMN_AMBIGUITY = "column_ambiguity"


class QuestionCategory(str, Enum):
    FORMAT_CONFIRMATION = "format_confirmation"
    COLUMN_MAPPING = "column_mapping"
    DATA_VALIDATION = "data_validation"
    CONFIRMATION = "confirmation"


class Severity(str, Enum):
    CRITICAL = "critical"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.RECOMMENDED: 1, Severity.OPTIONAL: 2}


class AnswerAction(str, Enum):
    ACCEPT_SUGGESTION = "accept_suggestion"
    REJECT = "reject"
    MANUAL_OVERRIDE = "manual_override"
    SKIP = "skip"
    REQUEST_CLARIFICATION = "request_clarification"


# Conversation step values
class ConversationStep:
    """Conversation step constants."""
    FORMAT_CONFIRMATION = "format_confirmation"
    COLUMN_MAPPING = "column_mapping"
    DATA_VALIDATION = "data_validation"
    FINAL_CONFIRMATION = "final_confirmation"
    COMPLETE = "complete"


# Question kinds used to route answers
class QuestionKind:
    """Question kind constants."""
    FORMAT_CONFIRMATION = "format_confirmation"
    FORMAT_MANUAL_SPECIFICATION = "format_manual_specification"
    TABLE_INTERPRETATION = "table_interpretation"
    FIELD_CONFLICT = "field_conflict"
    COLUMN_AMBIGUITY = "column_ambiguity"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    ANOMALIES_REVIEW = "anomalies_review"
    ANOMALY = "anomaly"
    DATA_VALIDATION = "data_validation"
    CLARIFICATION = "clarification"
    MANUAL_OVERRIDE = "manual_override"
    FINAL_CONFIRMATION = "final_confirmation"


# Error markers counted against spreadsheet data quality
ERROR_MARKERS = ("###", "ERROR", "#N/A", "#REF!", "#VALUE!", "#DIV/0!")

DEFAULT_SESSION_ID_PREFIX = "val_"
