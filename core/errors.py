# core/errors.py
from __future__ import annotations


class BackendError(RuntimeError):
    """Raised when the hosted backend cannot satisfy a request."""


class DocumentNotFoundError(BackendError):
    """Raised when a referenced document was deleted or the ID is invalid."""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document '{document_id}' not found in '{collection}'")
        self.collection = collection
        self.document_id = document_id


class TransientBackendError(BackendError):
    """Raised when a backend call fails for network or API reasons."""


class MalformedReferenceError(ValueError):
    """Raised when a reference field holds no usable identifier."""

    def __init__(self, raw):
        super().__init__(f"Malformed reference: {raw!r}")
        self.raw = raw
