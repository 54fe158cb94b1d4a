"""
doccontext exceptions.

Retrieval tiers raise these and the cascade orchestrator converts them into
demotions; none of them reach the caller of ``select_context``.
"""

from typing import Any, Dict, Optional


class DocContextError(Exception):
    """Base exception class for all doccontext errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class EmbeddingError(DocContextError):
    """Errors related to embedding generation and model loading."""
    pass


class StorageError(DocContextError):
    """Errors related to the section, chunk and record stores."""
    pass


class RetrievalError(DocContextError):
    """Errors related to context retrieval."""
    pass


class ConfigurationError(DocContextError):
    """Errors related to configuration loading and validation."""
    pass


class EmbeddingUnavailable(EmbeddingError):
    """Raised when the embedding model cannot be loaded or inference fails."""

    def __init__(self, model_name: str, reason: str = "", details: Optional[Dict[str, Any]] = None):
        message = f"Embedding model '{model_name}' is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "EMBEDDING_UNAVAILABLE", details)
        self.model_name = model_name


class StorageUnavailable(StorageError):
    """Raised when a persisted store cannot be reached."""

    def __init__(self, store: str, operation: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Store '{store}' is unavailable during '{operation}'",
            "STORAGE_UNAVAILABLE",
            details
        )
        self.store = store
        self.operation = operation


class NoCandidates(RetrievalError):
    """Raised when the requested documents yield no sections at all."""

    def __init__(self, document_ids, details: Optional[Dict[str, Any]] = None):
        ids = list(document_ids)
        super().__init__(
            f"No candidate sections for {len(ids)} document(s)",
            "NO_CANDIDATES",
            {"document_ids": ids, **(details or {})}
        )


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid."""

    def __init__(self, config_key: str, value: Any, expected: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Invalid configuration for '{config_key}': got {value}, expected {expected}",
            "INVALID_CONFIG",
            details
        )
