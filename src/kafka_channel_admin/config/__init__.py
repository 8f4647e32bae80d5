"""Configuration management for kafka-channel-admin.

This package resolves the transport and application configurations from
the compiled-in defaults and the operator supplied configuration resource.
"""

from .base_config import BaseConfig, ConfigValidationError, ValidationIssue, ValidationResult
from .config_loader import ConfigLoader
from .credentials import CredentialResolver, InMemorySecretStore, MountedSecretResolver, SecretLister, SecretRef
from .defaults import DEFAULTS, Defaults
from .sources import ManifestOverlaySource, OverlaySource, RawOverlay, StaticOverlaySource
from .transport_config import SaslMechanism, SecurityProtocol, TransportConfig
from .app_config import AppConfig, RoleSizing, TopicDefaults
from .merger import ConfigMerger, load_settings, merge

__all__ = [
    "BaseConfig",
    "ConfigValidationError",
    "ValidationIssue",
    "ValidationResult",
    "ConfigLoader",
    "CredentialResolver",
    "InMemorySecretStore",
    "MountedSecretResolver",
    "SecretLister",
    "SecretRef",
    "DEFAULTS",
    "Defaults",
    "ManifestOverlaySource",
    "OverlaySource",
    "RawOverlay",
    "StaticOverlaySource",
    "SaslMechanism",
    "SecurityProtocol",
    "TransportConfig",
    "AppConfig",
    "RoleSizing",
    "TopicDefaults",
    "ConfigMerger",
    "load_settings",
    "merge",
]
