"""FastAPI application for census file intake."""

import logging
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.exceptions import ProcessedFileNotFoundError, UploadTooLargeError
from api.routers import conversations, files
from census_intake.config import get_config
from census_intake.exceptions import (
    ConversationError,
    EmptyGridError,
    ExtractionError,
    InvalidStateTransitionError,
    SessionFinalizedError,
    SessionNotFoundError,
    UnsupportedFileError,
)

config = get_config()

# Configure logging
logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Census Intake API",
    description="Upload employee census files, review the detected mapping and resolve it through a short conversation",
    version="1.0.0",
)

# CORS origins can be set via CORS_ORIGINS env var as comma-separated list
cors_origins_str: str = getattr(config, "cors_origins", "")
cors_origins: List[str] = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()] if cors_origins_str else []

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if cors_origins else ["*"],  # Default to * for development
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# Exception handlers
@app.exception_handler(ProcessedFileNotFoundError)
async def processed_file_not_found_handler(request: Request, exc: ProcessedFileNotFoundError):
    """Handle unknown file ids."""
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    """Handle unknown or expired sessions."""
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(UploadTooLargeError)
async def upload_too_large_handler(request: Request, exc: UploadTooLargeError):
    """Handle uploads above the size limit."""
    return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, exc)


@app.exception_handler(UnsupportedFileError)
async def unsupported_file_handler(request: Request, exc: UnsupportedFileError):
    """Handle files whose kind cannot be recognized."""
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(EmptyGridError)
async def empty_grid_handler(request: Request, exc: EmptyGridError):
    """Handle files without any data."""
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    """Handle files the extractor cannot parse."""
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(InvalidStateTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidStateTransitionError):
    """Handle invalid conversation step transitions."""
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(SessionFinalizedError)
async def session_finalized_handler(request: Request, exc: SessionFinalizedError):
    """Handle answers sent to a finalized session."""
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(ConversationError)
async def conversation_error_handler(request: Request, exc: ConversationError):
    """Handle other conversation errors."""
    logger.warning(f"Conversation error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    # Convert errors to JSON-serializable format
    serializable_errors = []
    for error in exc.errors():
        serializable_error = {}
        for key, value in error.items():
            if isinstance(value, Exception):
                serializable_error[key] = str(value)
            else:
                serializable_error[key] = value
        serializable_errors.append(serializable_error)

    logger.warning(f"Validation error: {serializable_errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": serializable_errors, "error_type": "ValidationError"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    error_detail = str(exc) if exc else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": error_detail, "error_type": type(exc).__name__},
    )


# Include routers
app.include_router(files.router)
app.include_router(conversations.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Census Intake API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
