"""
Domain Errors

Architectural Intent:
- Single exception hierarchy for every failure enisync surfaces
- Callers can catch a whole family (InterfaceError, CloudClientError, ...)
  or a specific condition (UnknownInterfaceError, CloudPermissionError, ...)
- Adapters translate provider/OS specific failures into these classes at
  the boundary so the domain and application layers never see botocore,
  http.client or subprocess exceptions

Retry Policy:
- Only MetadataConnectionFailed conditions are retried (inside the
  metadata adapter); everything else propagates on first occurrence
"""

from typing import Optional


class EniSyncError(Exception):
    """Base class for all enisync errors."""


class InstanceEnvironmentError(EniSyncError):
    """The instance, region or VPC context could not be detected."""


# ---------------------------------------------------------------------------
# Instance metadata
# ---------------------------------------------------------------------------

class MetadataError(EniSyncError):
    pass


class MetadataNotFound(MetadataError):
    pass


class MetadataBadResponse(MetadataError):
    pass


class MetadataConnectionFailed(MetadataError):
    pass


# ---------------------------------------------------------------------------
# Local interfaces
# ---------------------------------------------------------------------------

class InterfaceError(EniSyncError):
    pass


class UnknownInterfaceError(InterfaceError):
    pass


class InvalidInterfaceError(InterfaceError):
    pass


class InterfacePermissionError(InterfaceError):
    pass


class InterfaceOperationError(InterfaceError):
    pass


# ---------------------------------------------------------------------------
# Cloud control plane
# ---------------------------------------------------------------------------

class CloudClientError(EniSyncError):
    pass


class CloudPermissionError(CloudClientError):
    pass


class CloudOperationError(CloudClientError):
    """A cloud API call failed; carries the provider error code when known."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message


class AttachmentLimitExceeded(CloudOperationError):
    pass


class UnknownAddressError(CloudClientError):
    pass


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class InputError(EniSyncError, ValueError):
    pass


class MissingParameterError(InputError):
    pass


class InvalidParameterError(InputError):
    pass


class ConvergenceTimeoutError(EniSyncError, TimeoutError):
    """A convergence wait exhausted its budget."""

    def __init__(self, condition: str, timeout: float):
        super().__init__(f"Timed out after {timeout:g}s waiting for {condition}")
        self.condition = condition
        self.timeout = timeout
