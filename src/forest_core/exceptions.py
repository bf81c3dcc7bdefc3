"""Custom exceptions for the Forest relevance engine.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.

Pure scoring and classification never raise; these exceptions cover
configuration, embedding provider I/O, and stored-data shape problems.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Node errors (1xxx)
    NODE_NOT_FOUND = 1001
    NODE_VALIDATION_FAILED = 1002

    # Edge errors (2xxx)
    EDGE_INVALID = 2001
    EDGE_NOT_FOUND = 2002
    EDGE_SELF_REFERENCE = 2003

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    DATA_SHAPE_INVALID = 4003

    # Search errors (5xxx)
    SEARCH_FAILED = 5001

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001
    CONFIG_MISSING = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001

    # Embedding errors (8xxx)
    EMBEDDING_MODEL_LOAD_FAILED = 8001
    EMBEDDING_INFERENCE_FAILED = 8002
    EMBEDDING_REMOTE_FAILED = 8003


class ForestError(Exception):
    """Base exception for all Forest errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NodeNotFoundError(ForestError):
    """Raised when a node cannot be found."""

    def __init__(self, node_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Node with ID '{node_id}' not found",
            code=ErrorCode.NODE_NOT_FOUND,
            details={"node_id": node_id}
        )
        self.node_id = node_id


class LinkError(ForestError):
    """Raised for edge-related errors."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        target_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.EDGE_INVALID
    ):
        details = {}
        if source_id:
            details["source_id"] = source_id
        if target_id:
            details["target_id"] = target_id

        super().__init__(message, code=code, details=details)
        self.source_id = source_id
        self.target_id = target_id


class StorageError(ForestError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class DataShapeError(StorageError):
    """Raised when stored tags, token counts or embeddings are malformed.

    Stored data is never coerced into shape; callers see this error
    instead of a silently repaired value.

    Attributes:
        field: Name of the offending column (e.g. "embedding")
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation="decode",
            code=ErrorCode.DATA_SHAPE_INVALID,
            original_error=original_error
        )
        self.field = field
        if field:
            self.details["field"] = field


class ConfigurationError(ForestError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class EmbeddingError(ForestError):
    """Raised when an embedding provider fails to load or to embed.

    No retry is attempted inside the engine; the original exception is
    kept on ``original_error`` for callers that want to retry at the
    boundary.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_INFERENCE_FAILED,
        operation: Optional[str] = None,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if provider:
            details["provider"] = provider
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.provider = provider
        self.original_error = original_error
