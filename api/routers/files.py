"""Files API router."""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import get_file_service
from api.models.responses import ProcessedFileResponse
from api.services.file_service import ProcessedFileService
from census_intake.models.processed import ProcessedFileData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["files"])


def _file_response(file_id: str, processed: ProcessedFileData) -> ProcessedFileResponse:
    summary = processed.to_dict()
    return ProcessedFileResponse(
        file_id=file_id,
        file_name=processed.file.name,
        source_kind=summary["source_kind"],
        format=summary["format"],
        tables=summary["structure"]["tables"],
        mapping=summary["mapping"],
        anomalies=summary["structure"]["anomalies"],
        metadata=summary["metadata"],
        questions=summary["questions"],
    )


@router.post("/files", response_model=ProcessedFileResponse)
async def upload_file(
    file: UploadFile = File(..., description="Census file (spreadsheet, CSV, PDF, image or text)"),
    file_service: ProcessedFileService = Depends(get_file_service),
):
    """
    Upload and process a census file.

    This endpoint accepts file uploads via multipart/form-data.

    Args:
        file: Uploaded census file
        file_service: Processed file service dependency

    Returns:
        Format, tables, mapping, anomalies and initial questions of the file
    """
    content = await file.read()
    file_id, processed = file_service.process_upload(
        file.filename or "upload", content, file.content_type
    )
    return _file_response(file_id, processed)


@router.get("/files/{file_id}", response_model=ProcessedFileResponse)
def get_file(
    file_id: str,
    file_service: ProcessedFileService = Depends(get_file_service),
):
    """
    Get the processing summary of a previously uploaded file.

    Raises:
        ProcessedFileNotFoundError: If the id is unknown or was evicted
    """
    return _file_response(file_id, file_service.get(file_id))
