"""Admin client factory.

Selects the backend for the configured ``AdminType`` and invokes its
constructor. Constructors live in a ``BackendRegistry`` handed to the
factory; tests substitute a constructor by building a registry with
``with_constructor`` rather than by patching module state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from ..config.app_config import AppConfig
from ..config.transport_config import TransportConfig
from ..errors import BackendConstructionError, OperationCancelledError, UnsupportedBackendError
from .admin_client import AdminClient
from .admin_type import AdminType
from .context import AdminContext
from .custom_admin import new_custom_admin_client
from .eventhub_admin import new_eventhub_admin_client
from .kafka_admin import new_kafka_admin_client

logger = logging.getLogger(__name__)

KafkaConstructor = Callable[[AdminContext, TransportConfig, str, str], AdminClient]
NamespaceConstructor = Callable[[AdminContext, str], AdminClient]

_REGISTRY_FIELDS = {
    AdminType.KAFKA: "kafka",
    AdminType.EVENTHUB: "eventhub",
    AdminType.CUSTOM: "custom",
}


@dataclass(frozen=True)
class BackendRegistry:
    """Constructor per backend variant.

    Attributes:
        kafka: Called with (ctx, transport, client_id, namespace).
        eventhub: Called with (ctx, namespace).
        custom: Called with (ctx, namespace).
    """
    kafka: KafkaConstructor = new_kafka_admin_client
    eventhub: NamespaceConstructor = new_eventhub_admin_client
    custom: NamespaceConstructor = new_custom_admin_client

    @classmethod
    def default(cls) -> "BackendRegistry":
        """Return the registry wired with the production constructors."""
        return cls()

    def with_constructor(self, admin_type: AdminType, constructor: Callable[..., AdminClient]) -> "BackendRegistry":
        """Return a copy of this registry using ``constructor`` for ``admin_type``.

        Raises:
            ValueError: If ``admin_type`` has no backend, e.g. ``UNKNOWN``.
        """
        field_name = _REGISTRY_FIELDS.get(AdminType.parse(admin_type))
        if field_name is None:
            raise ValueError(f"No backend can be registered for admin type '{admin_type}'")
        return replace(self, **{field_name: constructor})


class AdminClientFactory:
    """Creates the admin client for the configured backend.

    The factory keeps no state besides its registry and performs no retries;
    it can be shared between threads.
    """

    def __init__(self, registry: Optional[BackendRegistry] = None) -> None:
        self._registry = registry or BackendRegistry.default()

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    def create(self, ctx: AdminContext, transport: TransportConfig, app: AppConfig) -> AdminClient:
        """Create the admin client for ``app.admin_type``.

        The native Kafka backend receives the transport configuration, its
        client ID and the system namespace. The other backends receive the
        system namespace only.

        Args:
            ctx: Context bounding the construction.
            transport: Resolved transport configuration.
            app: Resolved application configuration.

        Returns:
            The constructor's admin client, unchanged.

        Raises:
            UnsupportedBackendError: If the admin type has no backend. No
                constructor is invoked.
            BackendConstructionError: If the constructor fails. The original
                error is chained.
            OperationCancelledError: If ``ctx`` is cancelled or expires during
                construction.
        """
        admin_type = app.admin_type
        namespace = ctx.system_namespace

        if admin_type is AdminType.KAFKA:
            return self._construct(admin_type, self._registry.kafka,
                                   ctx, transport, transport.client_id, namespace)
        elif admin_type is AdminType.EVENTHUB:
            return self._construct(admin_type, self._registry.eventhub, ctx, namespace)
        elif admin_type is AdminType.CUSTOM:
            return self._construct(admin_type, self._registry.custom, ctx, namespace)
        else:
            logger.error(f"Unsupported admin type: {admin_type.value}")
            raise UnsupportedBackendError(admin_type)

    @staticmethod
    def _construct(admin_type: AdminType, constructor: Callable[..., AdminClient], *args: Any) -> AdminClient:
        logger.debug(f"Creating {admin_type.value} admin client")
        try:
            return constructor(*args)
        except OperationCancelledError:
            logger.warning(f"Creation of {admin_type.value} admin client was cancelled")
            raise
        except Exception as e:
            logger.error(f"Failed to create {admin_type.value} admin client: {e}")
            raise BackendConstructionError(admin_type, e) from e


def create_admin_client(ctx: AdminContext, transport: TransportConfig, app: AppConfig) -> AdminClient:
    """Create the admin client using the production constructors."""
    return AdminClientFactory().create(ctx, transport, app)
