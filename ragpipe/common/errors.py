"""
Error types surfaced by ragpipe.

Only input and configuration problems fail a request. Dependency failures
(embedding, search, rerank, generation) are absorbed by the component that
owns the call and never reach the caller as exceptions.
"""

from typing import Optional


class RagPipeError(Exception):
    """Base class for ragpipe errors"""

    error = "Request failed"
    suggestion: Optional[str] = None

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details

    def to_dict(self) -> dict:
        """Structured error response"""
        response = {
            "success": False,
            "error": self.error,
            "details": self.details,
        }
        if self.suggestion:
            response["suggestion"] = self.suggestion
        return response


class InputError(RagPipeError):
    """Malformed request (e.g. empty query)"""

    error = "Invalid request"


class ConfigurationError(RagPipeError):
    """Missing or invalid credentials for an external service"""

    error = "Configuration validation failed"

    def __init__(self, details: str, setting: Optional[str] = None):
        super().__init__(details)
        self.setting = setting
        if setting:
            self.suggestion = f"Please check your {setting} environment variable."


class IndexingError(RagPipeError):
    """A document could not be embedded or stored"""

    error = "Indexing failed"
