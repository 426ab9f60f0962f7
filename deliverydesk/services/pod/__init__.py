from .errors import (
    PodError,
    AuthorizationError,
    OrderNotFoundError,
    ValidationError,
    InvalidOrderStateError,
    CriticalPersistenceError,
    ExternalServiceError,
)
from .capture import EvidenceCapture, photo_from_upload
from .evidence_writer import EvidenceWriter
from .reconciler import PodReconciler
from .reconstructor import PodReconstructor

__all__ = [
    "PodError",
    "AuthorizationError",
    "OrderNotFoundError",
    "ValidationError",
    "InvalidOrderStateError",
    "CriticalPersistenceError",
    "ExternalServiceError",
    "EvidenceCapture",
    "photo_from_upload",
    "EvidenceWriter",
    "PodReconciler",
    "PodReconstructor",
]
