from typing import Optional


class PodError(Exception):
    """Base class for proof-of-delivery failures"""
    status_code = 500


class AuthorizationError(PodError):
    """Order does not exist for the acting driver. Raised before any write."""
    status_code = 404


class OrderNotFoundError(PodError):
    status_code = 404


class ValidationError(PodError):
    """Required completion fields are missing"""
    status_code = 400


class InvalidOrderStateError(ValidationError):
    """Order status does not allow the requested operation"""
    status_code = 409


class CriticalPersistenceError(PodError):
    """
    The delivery record or order status write failed.

    `pod_id` is set when a delivery record was already committed, leaving an
    orphan that a reconciliation job has to pick up.
    """
    status_code = 500

    def __init__(self, message: str, pod_id: Optional[str] = None):
        super().__init__(message)
        self.pod_id = pod_id


class ExternalServiceError(PodError):
    """Fulfillment call failed or returned a non-2xx response"""
    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.response_status = status_code
        self.body = body
