"""Admin client for Azure Event Hubs.

Event Hubs namespaces expose a Kafka compatible endpoint; an event hub is
a topic. Each namespace is described by a labelled secret in the system
namespace carrying the Event Hubs namespace name and its connection string.
Namespaces hold a limited number of hubs, so new hubs are spread over every
configured namespace.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from confluent_kafka.admin import AdminClient, NewTopic

from ..config.coercion import to_server_list
from ..config.transport_config import (
    DEFAULT_CLIENT_ID,
    SASLConfig,
    SaslMechanism,
    Timeouts,
    TLSConfig,
    TransportConfig,
)
from ..constants import (
    EVENTHUB_KAFKA_PORT,
    EVENTHUB_MAX_HUBS_PER_NAMESPACE,
    EVENTHUB_MAX_PARTITIONS,
    EVENTHUB_MAX_RETENTION_MILLIS,
    EVENTHUB_MIN_RETENTION_MILLIS,
    EVENTHUB_SASL_USERNAME,
    KAFKA_SECRET_KEY_BROKERS,
    KAFKA_SECRET_KEY_NAMESPACE,
    KAFKA_SECRET_KEY_PASSWORD,
    KAFKA_SECRET_LABEL,
)
from ..errors import TopicError, TopicErrorCode
from .admin_client import RETENTION_MS_CONFIG, ClosableAdminClient, TopicSpec
from .context import AdminContext
from .kafka_admin import make_admin_client, wait_for_topic

logger = logging.getLogger(__name__)


@dataclass
class EventHubNamespace:
    """An Event Hubs namespace and the hubs it currently holds.

    Attributes:
        name: Event Hubs namespace name.
        secret_name: Name of the secret the namespace was configured by.
        connection_string: Namespace connection string, used as SASL password.
        brokers: Kafka endpoint(s) of the namespace.
        hubs: Names of the hubs known to live in this namespace.
    """
    name: str
    secret_name: str
    connection_string: str
    brokers: List[str] = field(default_factory=list)
    hubs: Set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.brokers:
            self.brokers = [f"{self.name}.servicebus.windows.net:{EVENTHUB_KAFKA_PORT}"]

    @property
    def hub_count(self) -> int:
        return len(self.hubs)

    def has_capacity(self) -> bool:
        return self.hub_count < EVENTHUB_MAX_HUBS_PER_NAMESPACE

    def transport(self) -> TransportConfig:
        """Transport settings for the Kafka endpoint of this namespace."""
        return TransportConfig(
            bootstrap_servers=self.brokers,
            tls=TLSConfig(enabled=True),
            sasl=SASLConfig(
                enabled=True,
                mechanism=SaslMechanism.PLAIN.value,
                user=EVENTHUB_SASL_USERNAME,
                password=self.connection_string,
            ),
        )


def _namespace_admin_client(namespace: EventHubNamespace) -> AdminClient:
    return make_admin_client(DEFAULT_CLIENT_ID, namespace.transport())


def load_namespaces(ctx: AdminContext, namespace: str) -> List[EventHubNamespace]:
    """Read the Event Hubs namespaces configured by labelled secrets.

    Secrets lacking the namespace name or the connection string are skipped.

    Raises:
        ValueError: If ``ctx`` has no secret lister.
    """
    if ctx.secrets is None:
        raise ValueError("A secret lister is required to discover Event Hubs namespaces")

    namespaces = []
    for secret_name, data in ctx.secrets.list_secrets(namespace, {KAFKA_SECRET_LABEL: "true"}).items():
        hub_namespace = data.get(KAFKA_SECRET_KEY_NAMESPACE)
        connection_string = data.get(KAFKA_SECRET_KEY_PASSWORD)
        if not hub_namespace or not connection_string:
            logger.warning(f"Skipping Kafka secret {namespace}/{secret_name}: "
                           f"'{KAFKA_SECRET_KEY_NAMESPACE}' and '{KAFKA_SECRET_KEY_PASSWORD}' are required")
            continue

        brokers = data.get(KAFKA_SECRET_KEY_BROKERS)
        namespaces.append(EventHubNamespace(
            name=hub_namespace,
            secret_name=secret_name,
            connection_string=connection_string,
            brokers=to_server_list(brokers) if brokers else [],
        ))
    return namespaces


class EventHubAdmin(ClosableAdminClient):
    """Manages event hubs across one or more Event Hubs namespaces.

    On construction every namespace is asked for its hubs so that placement
    starts from the actual population. New hubs go to the least populated
    namespace that still has capacity.
    """

    def __init__(self,
                 ctx: AdminContext,
                 namespace: str,
                 *,
                 admin_client_factory: Optional[Callable[[EventHubNamespace], AdminClient]] = None,
                 timeout: Optional[float] = None,
                 ) -> None:
        """
        Args:
            ctx: Context bounding the namespace discovery.
            namespace: Namespace holding the labelled Event Hubs secrets.
            admin_client_factory: Creates the Kafka admin client of a namespace.
            timeout: Per request timeout in seconds.

        Raises:
            ValueError: If no usable Event Hubs namespace is configured.
            OperationCancelledError: If ``ctx`` is cancelled or expires.
        """
        super().__init__()
        self._ctx = ctx
        self._timeout = timeout if timeout is not None else Timeouts().admin.total_seconds()
        self._lock = threading.Lock()

        namespaces = load_namespaces(ctx, namespace)
        if not namespaces:
            logger.error(f"No Event Hubs namespaces configured in {namespace}")
            raise ValueError(f"No Event Hubs namespaces configured in {namespace}")

        factory = admin_client_factory or _namespace_admin_client
        self._namespaces: Dict[str, EventHubNamespace] = {}
        self._admin_clients: Dict[str, AdminClient] = {}
        for hub_namespace in namespaces:
            ctx.check()
            admin_client = factory(hub_namespace)
            metadata = admin_client.list_topics(timeout=ctx.remaining(self._timeout))
            hub_namespace.hubs.update(metadata.topics.keys())
            self._namespaces[hub_namespace.name] = hub_namespace
            self._admin_clients[hub_namespace.name] = admin_client
            logger.debug(f"Event Hubs namespace {hub_namespace.name} holds {hub_namespace.hub_count} hub(s)")

        logger.info(f"Managing {len(self._namespaces)} Event Hubs namespace(s)")

    @property
    def namespaces(self) -> List[EventHubNamespace]:
        with self._lock:
            return list(self._namespaces.values())

    def _find_hub(self, hub_name: str) -> Optional[EventHubNamespace]:
        for hub_namespace in self._namespaces.values():
            if hub_name in hub_namespace.hubs:
                return hub_namespace
        return None

    def _place_hub(self, hub_name: str) -> Optional[EventHubNamespace]:
        candidates = [ns for ns in self._namespaces.values() if ns.has_capacity()]
        if not candidates:
            return None
        chosen = min(candidates, key=lambda ns: ns.hub_count)
        chosen.hubs.add(hub_name)
        return chosen

    def create_topic(self, topic_name: str, spec: TopicSpec,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        """Create an event hub in the least populated namespace.

        Partitions must be between 1 and 32. Retention is clamped to the one
        to seven days Event Hubs supports; the replication factor is managed
        by Event Hubs and not passed on.
        """
        admin_clients = self._admin_clients
        closed = self._closed_error(topic_name)
        if closed:
            return closed

        if not 1 <= spec.num_partitions <= EVENTHUB_MAX_PARTITIONS:
            return TopicError(TopicErrorCode.INVALID_CONFIGURATION, topic_name,
                              f"partitions must be between 1 and {EVENTHUB_MAX_PARTITIONS}")

        retention = min(max(spec.retention_millis, EVENTHUB_MIN_RETENTION_MILLIS), EVENTHUB_MAX_RETENTION_MILLIS)
        if retention != spec.retention_millis:
            logger.debug(f"Clamped retention of event hub {topic_name} from {spec.retention_millis}ms to {retention}ms")

        with self._lock:
            if self._find_hub(topic_name) is not None:
                return TopicError(TopicErrorCode.ALREADY_EXISTS, topic_name)
            hub_namespace = self._place_hub(topic_name)
        if hub_namespace is None:
            logger.error(f"No Event Hubs namespace has capacity for {topic_name}")
            return TopicError(TopicErrorCode.UNAVAILABLE, topic_name, "all Event Hubs namespaces are full")

        new_topic = NewTopic(
            topic=topic_name,
            num_partitions=spec.num_partitions,
            config={**spec.topic_config(), RETENTION_MS_CONFIG: str(retention)},
        )
        futures = admin_clients[hub_namespace.name].create_topics([new_topic], request_timeout=self._timeout)
        error = wait_for_topic(ctx or self._ctx, futures, topic_name, self._timeout)

        if error is None:
            logger.info(f"Created event hub {topic_name} in namespace {hub_namespace.name}")
        elif error.code != TopicErrorCode.ALREADY_EXISTS:
            with self._lock:
                hub_namespace.hubs.discard(topic_name)
            logger.error(f"Failed to create event hub {topic_name}: {error}")
        return error

    def delete_topic(self, topic_name: str,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        """Delete an event hub from the namespace holding it."""
        admin_clients = self._admin_clients
        closed = self._closed_error(topic_name)
        if closed:
            return closed

        with self._lock:
            hub_namespace = self._find_hub(topic_name)
        if hub_namespace is None:
            logger.warning(f"Event hub {topic_name} not found in any namespace")
            return TopicError(TopicErrorCode.NOT_FOUND, topic_name)

        futures = admin_clients[hub_namespace.name].delete_topics([topic_name], request_timeout=self._timeout)
        error = wait_for_topic(ctx or self._ctx, futures, topic_name, self._timeout)

        if error is None or error.code == TopicErrorCode.NOT_FOUND:
            with self._lock:
                hub_namespace.hubs.discard(topic_name)
        if error is None:
            logger.info(f"Deleted event hub {topic_name} from namespace {hub_namespace.name}")
        else:
            logger.error(f"Failed to delete event hub {topic_name}: {error}")
        return error

    def get_secret_name(self, namespace: str) -> str:
        """Return the secret of the given Event Hubs namespace, or '' if it is unknown."""
        with self._lock:
            hub_namespace = self._namespaces.get(namespace)
        return hub_namespace.secret_name if hub_namespace else ""

    def hub_namespace(self, hub_name: str) -> Optional[str]:
        """Return the Event Hubs namespace holding the given hub."""
        with self._lock:
            hub_namespace = self._find_hub(hub_name)
        return hub_namespace.name if hub_namespace else None

    def _close(self) -> None:
        self._admin_clients = {}


def new_eventhub_admin_client(ctx: AdminContext, namespace: str) -> EventHubAdmin:
    """Backend constructor for ``AdminType.EVENTHUB``."""
    return EventHubAdmin(ctx, namespace)
