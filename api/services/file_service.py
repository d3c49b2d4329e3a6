"""Processed file service: runs the pipeline and keeps results for session start."""

import logging
import uuid
from typing import Optional, Tuple

from api.exceptions import ProcessedFileNotFoundError, UploadTooLargeError
from census_intake.config import AppConfig, get_config
from census_intake.models.processed import ProcessedFileData
from census_intake.pipeline import CensusIngestionPipeline
from census_intake.utils.lru_cache import LRUCache

logger = logging.getLogger(__name__)


class ProcessedFileService:
    """Processes uploads and caches the results under a file id."""

    def __init__(
        self,
        pipeline: Optional[CensusIngestionPipeline] = None,
        config: Optional[AppConfig] = None,
    ):
        """
        Initialize processed file service.

        Args:
            pipeline: Optional pipeline. If None, one is built from config.
            config: Optional config. If None, uses the global config.
        """
        self.config = config or get_config()
        self.pipeline = pipeline or CensusIngestionPipeline(self.config)
        self._cache: LRUCache[ProcessedFileData] = LRUCache(max_size=self.config.processed_file_cache_size)

    def process_upload(
        self, file_name: str, content: bytes, media_type: Optional[str] = None
    ) -> Tuple[str, ProcessedFileData]:
        """
        Process an uploaded file and cache the result.

        Returns:
            (file_id, processed file data)

        Raises:
            UploadTooLargeError: If the content exceeds MAX_UPLOAD_BYTES
            IngestionError: If the file cannot be processed
        """
        if len(content) > self.config.max_upload_bytes:
            raise UploadTooLargeError(
                f"File '{file_name}' is {len(content)} bytes; the limit is {self.config.max_upload_bytes}"
            )
        processed = self.pipeline.process_file(file_name, content, media_type)
        file_id = uuid.uuid4().hex
        self._cache.set(file_id, processed)
        logger.info(f"Processed '{file_name}' as file {file_id}")
        return file_id, processed

    def get(self, file_id: str) -> ProcessedFileData:
        """
        Get a processed file.

        Raises:
            ProcessedFileNotFoundError: If the id is unknown or was evicted
        """
        processed = self._cache.get(file_id)
        if processed is None:
            raise ProcessedFileNotFoundError(f"Processed file '{file_id}' not found")
        return processed
