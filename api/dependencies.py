"""FastAPI dependencies for the pipeline and services."""

from functools import lru_cache

from api.services.file_service import ProcessedFileService
from census_intake.config import get_config
from census_intake.conversation.questions import QuestionGenerator
from census_intake.conversation.service import ConversationService
from census_intake.conversation.store import SessionStore
from census_intake.pipeline import CensusIngestionPipeline


@lru_cache()
def get_pipeline() -> CensusIngestionPipeline:
    """Get cached ingestion pipeline."""
    return CensusIngestionPipeline(get_config())


@lru_cache()
def get_file_service() -> ProcessedFileService:
    """
    Get processed file service instance.

    Returns:
        ProcessedFileService sharing the cached pipeline
    """
    return ProcessedFileService(pipeline=get_pipeline(), config=get_config())


@lru_cache()
def get_conversation_service() -> ConversationService:
    """
    Get conversation service instance.

    The session store lives as long as the process.

    Returns:
        ConversationService instance
    """
    config = get_config()
    pipeline = get_pipeline()
    return ConversationService(
        store=SessionStore(config.conversation.session_idle_timeout_seconds),
        generator=QuestionGenerator(config.conversation),
        mapper=pipeline.mapper,
        config=config.conversation,
    )
