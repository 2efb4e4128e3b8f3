"""
Error taxonomy for the replay engine.

Fatal errors are raised as ReplayError subclasses and carry the status class
used when they are rendered as an error envelope. Provider and network
failures are not exceptions: they are recorded on the replay itself.
"""

from typing import Any, Dict, Optional


class ReplayError(Exception):
    """Base class for fatal replay errors."""
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        """Render the structured error envelope."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status": self.status_code,
            }
        }


class NotFoundError(ReplayError):
    """Raised when the original request is absent or outside the given scope."""
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class BadRequestError(ReplayError):
    """Raised for invalid replay options or an unresolvable model/provider."""
    status_code = 400
    code = "bad_request"


class StorageError(ReplayError):
    """Raised when the replay record could not be appended to the store."""
    status_code = 500
    code = "storage_error"


def internal_error_envelope() -> Dict[str, Any]:
    """Envelope returned for unexpected exceptions; no details leak out."""
    return {
        "error": {
            "message": "Internal server error",
            "code": "internal_error",
            "status": 500,
        }
    }
