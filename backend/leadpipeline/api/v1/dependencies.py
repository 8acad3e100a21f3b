"""
API Dependencies
Pipeline service access and domain error mapping
"""
from fastapi import HTTPException, status

from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.domain.exceptions import (
    PipelineError,
    InvalidTransitionError,
    NoCapacityError,
    CardNotFoundError,
    AgentNotFoundError,
    TaskNotFoundError,
    InvalidAttemptError,
    StorageError,
)
from leadpipeline.services.pipeline_factory import get_pipeline_service as _get_pipeline_service


def get_pipeline_service() -> PipelineService:
    """Dependency returning the process-wide pipeline service."""
    return _get_pipeline_service()


_STATUS_BY_ERROR = (
    (CardNotFoundError, status.HTTP_404_NOT_FOUND),
    (AgentNotFoundError, status.HTTP_404_NOT_FOUND),
    (TaskNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InvalidAttemptError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NoCapacityError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(error: PipelineError) -> HTTPException:
    """Map a domain error to the matching HTTP error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)
