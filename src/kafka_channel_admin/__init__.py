"""Kafka Channel Admin - Main Package.

This package resolves the Kafka channel configuration and creates the admin
client managing topics on the configured backend:
- Configuration merge of compiled-in defaults and the operator overlay
- Transport (connection and security) and application settings
- Admin clients for Kafka, Azure Event Hubs and a custom REST sidecar
"""

# Admin capability set (import first to avoid circular dependencies)
from .admin import (
    AdminClient,
    AdminClientFactory,
    AdminContext,
    AdminType,
    BackendRegistry,
    TopicSpec,
    create_admin_client,
    make_admin_client,
)

# Configuration
from .config import (
    AppConfig,
    ConfigMerger,
    Defaults,
    DEFAULTS,
    RawOverlay,
    TransportConfig,
    load_settings,
    merge,
)
from .client_logging import enable_client_logging
from .errors import (
    BackendConstructionError,
    ConfigurationError,
    CredentialResolutionError,
    EmptyOverlayError,
    FactoryError,
    FieldCoercionError,
    MalformedOverlayError,
    MissingPayloadKeyError,
    OperationCancelledError,
    SourceUnavailableError,
    TopicError,
    TopicErrorCode,
    UnsupportedBackendError,
)

__version__ = "0.1.0"

__all__ = [
    # Admin clients
    "AdminClient",
    "AdminClientFactory",
    "AdminContext",
    "AdminType",
    "BackendRegistry",
    "TopicSpec",
    "create_admin_client",
    "make_admin_client",

    # Configuration
    "AppConfig",
    "ConfigMerger",
    "Defaults",
    "DEFAULTS",
    "RawOverlay",
    "TransportConfig",
    "load_settings",
    "merge",
    "enable_client_logging",

    # Errors
    "BackendConstructionError",
    "ConfigurationError",
    "CredentialResolutionError",
    "EmptyOverlayError",
    "FactoryError",
    "FieldCoercionError",
    "MalformedOverlayError",
    "MissingPayloadKeyError",
    "OperationCancelledError",
    "SourceUnavailableError",
    "TopicError",
    "TopicErrorCode",
    "UnsupportedBackendError",
]
