from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    # generation time, fatal to the whole declared interface
    MALFORMED_TEMPLATE = "malformed_template"
    UNSUPPORTED_DEFAULT = "unsupported_default"
    MISSING_METHOD = "missing_method"
    DUPLICATE_METHOD = "duplicate_method"
    UNKNOWN_BODY_PARAMETER = "unknown_body_parameter"
    FILE_UPLOAD_WITHOUT_BODY = "file_upload_without_body"
    UNKNOWN_QUERY_PARAMETER = "unknown_query_parameter"
    DUPLICATE_OPERATION = "duplicate_operation"
    INVALID_DECLARATION = "invalid_declaration"

    # runtime, surfaced by generated services
    UNEXPECTED_RESPONSE = "unexpected_response"
    FAILED_TO_MAP_RESPONSE = "failed_to_map_response"
    FAILED_TO_PIN = "failed_to_pin"
    UNKNOWN = "unknown"


class GenerationError(Exception):
    """Raised when a declaration cannot be turned into code.

    Generation is all-or-nothing: the first error aborts the pass and no
    module is emitted for the interface.
    """

    def __init__(self, kind: ErrorKind, message: str, location: Optional[str] = None):
        self.kind = kind
        self.message = message
        self.location = location
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message

    def at(self, location: str) -> "GenerationError":
        # keep the innermost location if one was already attached
        if self.location:
            return self
        return GenerationError(self.kind, self.message, location)
