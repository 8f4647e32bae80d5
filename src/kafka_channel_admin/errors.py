"""Exception hierarchy for kafka-channel-admin.

Configuration errors are fatal to startup: the merge never hands back a
partially resolved configuration. Factory errors are raised to the immediate
caller with the backend variant attached. Topic operation failures are not
raised at all; admin clients return them as ``TopicError`` values so that
calling code can apply its own retry policy.
"""

from enum import Enum
from typing import Any, Optional


class ConfigurationError(Exception):
    """Base class for every failure of the configuration merge."""
    pass


class SourceUnavailableError(ConfigurationError):
    """Raised when the configuration resource does not exist at all."""

    def __init__(self, name: str, namespace: Optional[str] = None) -> None:
        self.name = name
        self.namespace = namespace
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"Configuration resource {location} not found")


class EmptyOverlayError(ConfigurationError):
    """Raised when the configuration resource exists but carries no data."""

    def __init__(self, name: str, message: Optional[str] = None) -> None:
        self.name = name
        super().__init__(message or f"Configuration resource {name} has no data")


class MissingPayloadKeyError(EmptyOverlayError):
    """Raised when a required payload key is absent from the resource data."""

    def __init__(self, name: str, key: str) -> None:
        self.key = key
        super().__init__(name, f"Configuration resource {name} has no '{key}' payload")


class MalformedOverlayError(ConfigurationError):
    """Raised when a payload cannot be parsed as a structured document."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed '{key}' payload: {reason}")


class FieldCoercionError(ConfigurationError):
    """Raised when a single field fails type or range validation.

    Attributes:
        field: Dotted path of the offending field, prefixed with its payload key.
        value: The raw value that failed coercion (``None`` for invariant failures).
        reason: Human readable description of the failure.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class CredentialResolutionError(ConfigurationError):
    """Raised when a referenced secret value cannot be resolved."""

    def __init__(self, field: str, ref: Any, reason: str = "secret not found") -> None:
        self.field = field
        self.ref = ref
        super().__init__(f"Unable to resolve {field} from {ref}: {reason}")


class FactoryError(Exception):
    """Base class for admin client factory failures."""
    pass


class UnsupportedBackendError(FactoryError):
    """Raised when dispatching on an admin type no backend is registered for."""

    def __init__(self, admin_type: Any) -> None:
        self.admin_type = admin_type
        super().__init__(f"Unsupported admin type: {getattr(admin_type, 'value', admin_type)}")


class BackendConstructionError(FactoryError):
    """Raised when a backend constructor fails. The original error is chained."""

    def __init__(self, admin_type: Any, cause: BaseException) -> None:
        self.admin_type = admin_type
        self.cause = cause
        super().__init__(
            f"Failed to create {getattr(admin_type, 'value', admin_type)} admin client: {cause}"
        )


class OperationCancelledError(Exception):
    """Raised when a context is cancelled or its deadline passes mid-operation."""
    pass


class TopicErrorCode(Enum):
    """Outcome categories of topic lifecycle operations."""
    ALREADY_EXISTS = "AlreadyExists"
    NOT_FOUND = "NotFound"
    INVALID_CONFIGURATION = "InvalidConfiguration"
    UNAUTHORIZED = "Unauthorized"
    UNAVAILABLE = "Unavailable"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"


class TopicError(Exception):
    """Structured failure of a topic operation.

    Admin clients return instances of this class rather than raising them.
    Callers that prefer exceptions may simply ``raise`` the returned value.
    """

    def __init__(self, code: TopicErrorCode, topic: str, message: str = "") -> None:
        self.code = code
        self.topic = topic
        self.message = message
        super().__init__(f"{code.value}: topic {topic}" + (f": {message}" if message else ""))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TopicError):
            return NotImplemented
        return (self.code, self.topic, self.message) == (other.code, other.topic, other.message)

    def __hash__(self) -> int:
        return hash((self.code, self.topic, self.message))

    def __repr__(self) -> str:
        return f"TopicError(code={self.code.name}, topic={self.topic!r}, message={self.message!r})"
