"""Configuration merge.

Combines the compiled-in defaults with the operator supplied overlay into a
validated ``TransportConfig`` and ``AppConfig``. Every failure is fatal: the
merge either returns both configurations or raises, never a partial result.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from ..client_logging import enable_client_logging
from ..constants import APP_SETTINGS_KEY, SETTINGS_CONFIG_NAME, TRANSPORT_SETTINGS_KEY
from ..errors import EmptyOverlayError, MissingPayloadKeyError, SourceUnavailableError
from .app_config import AppConfig
from .config_loader import ConfigLoader
from .credentials import CredentialResolver
from .defaults import DEFAULTS, Defaults
from .sources import OverlaySource, RawOverlay
from .transport_config import TransportConfig

logger = logging.getLogger(__name__)


class ConfigMerger:
    """Resolves configurations from defaults, an overlay and a credential resolver.

    The merger holds no mutable state. Given the same defaults, overlay and
    resolver answers it always produces equal configurations.
    """

    def __init__(self, defaults: Defaults = DEFAULTS,
                 resolver: Optional[CredentialResolver] = None) -> None:
        """
        Args:
            defaults: Baseline settings the overlay is layered on.
            resolver: Resolves secret references in credential fields. Without
                one, any secret reference fails the merge.
        """
        self._defaults = defaults
        self._resolver = resolver

    def merge(self, overlay: Optional[RawOverlay],
              client_id: Optional[str] = None) -> Tuple[TransportConfig, AppConfig]:
        """Merge the overlay over the defaults.

        Args:
            overlay: The fetched configuration resource, or None if it does not exist.
            client_id: Client ID overriding the one in the transport payload.

        Returns:
            The validated transport and application configurations.

        Raises:
            SourceUnavailableError: If ``overlay`` is None.
            EmptyOverlayError: If the overlay has no data.
            MissingPayloadKeyError: If the application payload is absent.
            MalformedOverlayError: If a payload is not a structured mapping.
            FieldCoercionError: If a field fails type or range validation.
            CredentialResolutionError: If a secret reference cannot be resolved.
        """
        if overlay is None:
            logger.error("Configuration resource not found")
            raise SourceUnavailableError(SETTINGS_CONFIG_NAME)

        if not overlay.data:
            logger.error(f"Configuration resource {overlay.namespace}/{overlay.name} has no data")
            raise EmptyOverlayError(overlay.name)

        if APP_SETTINGS_KEY not in overlay.data:
            logger.error(f"Configuration resource {overlay.name} has no '{APP_SETTINGS_KEY}' payload")
            raise MissingPayloadKeyError(overlay.name, APP_SETTINGS_KEY)

        # parse everything before building anything
        transport_overlay = ConfigLoader.parse_payload(
            TRANSPORT_SETTINGS_KEY, overlay.data.get(TRANSPORT_SETTINGS_KEY, ""))
        app_overlay = ConfigLoader.parse_payload(APP_SETTINGS_KEY, overlay.data[APP_SETTINGS_KEY])

        if TRANSPORT_SETTINGS_KEY not in overlay.data:
            logger.debug(f"No '{TRANSPORT_SETTINGS_KEY}' payload, using transport defaults")

        transport_settings = ConfigLoader.merge_configs(self._defaults.transport_settings(), transport_overlay)
        app_settings = ConfigLoader.merge_configs(self._defaults.app_settings(), app_overlay)
        _log_unknown_keys(TRANSPORT_SETTINGS_KEY, self._defaults.transport, transport_overlay)
        _log_unknown_keys(APP_SETTINGS_KEY, self._defaults.app, app_overlay)

        transport = TransportConfig.from_dict(transport_settings, self._resolver, overlay.namespace)
        if client_id:
            transport = transport.with_client_id(client_id)
        app = AppConfig.from_dict(app_settings)

        for config in (transport, app):
            result = config.validate()
            for warning in result.warnings:
                logger.warning(f"{config.__class__.__name__}: {warning}")

        logger.debug(f"Merged configuration from {overlay.namespace}/{overlay.name}")
        return transport, app

    def load(self, source: OverlaySource,
             client_id: Optional[str] = None) -> Tuple[TransportConfig, AppConfig]:
        """Fetch the overlay from ``source`` and merge it."""
        return self.merge(source.fetch(), client_id=client_id)


def merge(defaults: Defaults, overlay: Optional[RawOverlay],
          resolver: Optional[CredentialResolver] = None,
          client_id: Optional[str] = None) -> Tuple[TransportConfig, AppConfig]:
    """Merge ``overlay`` over ``defaults``. See ``ConfigMerger.merge``."""
    return ConfigMerger(defaults, resolver).merge(overlay, client_id=client_id)


def load_settings(source: OverlaySource,
                  resolver: Optional[CredentialResolver] = None,
                  client_id: Optional[str] = None,
                  defaults: Defaults = DEFAULTS) -> Tuple[TransportConfig, AppConfig]:
    """Load the startup configuration.

    Fetches the overlay, merges it and applies the client logging setting.
    Any error is fatal to startup and propagates unchanged.
    """
    transport, app = ConfigMerger(defaults, resolver).load(source, client_id=client_id)
    enable_client_logging(app.enable_client_logging)
    logger.info(f"Loaded settings (admin type: {app.admin_type.value})")
    return transport, app


def _log_unknown_keys(payload: str, schema: Mapping[str, Any], overlay: Dict[str, Any], path: str = "") -> None:
    for key, value in overlay.items():
        field_path = f"{path}.{key}" if path else str(key)
        if key not in schema:
            logger.debug(f"Ignoring unknown setting {payload}.{field_path}")
        elif isinstance(schema[key], dict) and isinstance(value, dict):
            _log_unknown_keys(payload, schema[key], value, field_path)
