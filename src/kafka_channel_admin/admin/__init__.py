"""Admin clients for Kafka topic lifecycle management.

This package provides the admin client capability set, the backend
implementations for each admin type and the factory selecting between them.
"""

# Capability set (import first, the config package depends on it)
from .admin_type import AdminType
from .admin_client import AdminClient, ClosableAdminClient, TopicSpec
from .context import AdminContext

# Backends and factory
from .kafka_admin import KafkaClusterAdmin, make_admin_client, new_kafka_admin_client
from .eventhub_admin import EventHubAdmin, EventHubNamespace, new_eventhub_admin_client
from .custom_admin import SidecarAdmin, new_custom_admin_client
from .factory import AdminClientFactory, BackendRegistry, create_admin_client

__all__ = [
    "AdminType",
    "AdminClient",
    "ClosableAdminClient",
    "TopicSpec",
    "AdminContext",
    "KafkaClusterAdmin",
    "make_admin_client",
    "new_kafka_admin_client",
    "EventHubAdmin",
    "EventHubNamespace",
    "new_eventhub_admin_client",
    "SidecarAdmin",
    "new_custom_admin_client",
    "AdminClientFactory",
    "BackendRegistry",
    "create_admin_client",
]
