import asyncio


class OperationCancelledError(asyncio.CancelledError):
    """Raised when a caller-supplied cancellation signal fires before an operation completes."""

    def __init__(self, message: str = "The operation was cancelled."):
        super().__init__(message)


class UnsupportedKeyTypeError(ValueError):
    """Raised when an id cannot be generated for the document's key type."""

    def __init__(self, key_type: object):
        name = getattr(key_type, "__name__", repr(key_type))
        super().__init__(
            f"Unsupported key type '{name}'. "
            "Supported key types are UUID, int, str and ObjectId."
        )
        self.key_type = key_type


class RepositoryConfigurationError(RuntimeError):
    """Raised when an operation needs a database handle the context was not given."""

    def __init__(self, message: str = "The repository context is not configured for this operation."):
        super().__init__(message)


# --- Validation Exceptions ---
class ValidationError(TypeError):
    """Base class for validation errors related to model types."""


class InvalidPathError(ValidationError, AttributeError):
    """Error raised when a field path does not exist or is invalid for the model."""


class ValueTypeError(ValidationError, TypeError):
    """Error raised when a value's type is incompatible with the expected field type."""
