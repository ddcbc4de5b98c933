# services/social_api/app/dependencies.py
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from core.config import logger as core_logger
from core.document_store import DocumentStore
from core.errors import DocumentNotFoundError, TransientBackendError
from core.models import ApiResponse, ResolutionReport
from core.storage import FileStorage

logger = core_logger.getChild("SocialAPI").getChild("Dependencies")


def get_store(request: Request) -> DocumentStore:
    """Dependency function to get the document store from app state."""
    store = getattr(request.app.state, 'store', None)
    if not store:
        logger.error("Document store dependency not met: store not available in application state.")
        raise HTTPException(status_code=503, detail="Backend document store not ready")
    return store

def get_storage(request: Request) -> FileStorage:
    """Dependency function to get the file storage from app state."""
    storage = getattr(request.app.state, 'storage', None)
    if not storage:
        logger.error("File storage dependency not met: storage not available in application state.")
        raise HTTPException(status_code=503, detail="Backend file storage not ready")
    return storage


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """Maps a failure from the CRUD layer to the HTTP error returned to clients."""
    if isinstance(error, DocumentNotFoundError):
        logger.info(f"{action}: {error}")
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransientBackendError):
        logger.error(f"Backend unavailable during {action}: {error}", exc_info=False)
        return HTTPException(status_code=503, detail="Backend service unavailable.")
    if isinstance(error, ValidationError):
        # a stored document that no longer fits the models
        logger.error(f"Invalid backend document during {action}: {error}", exc_info=False)
        return HTTPException(status_code=500, detail="Backend returned an unreadable document.")
    if isinstance(error, ValueError):
        logger.warning(f"Rejected {action}: {error}")
        return HTTPException(status_code=400, detail=str(error))
    logger.error(f"Unexpected error during {action}: {error}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal Server Error")


def success(data: Any = None, diagnostics: Optional[ResolutionReport] = None,
            message: Optional[str] = None) -> ApiResponse:
    failures = diagnostics.failures if diagnostics is not None else []
    if failures and message is None:
        message = f"{len(failures)} reference(s) could not be resolved"
    return ApiResponse(status="success", data=jsonable_encoder(data), message=message, diagnostics=failures)
