import concurrent.futures
import logging
from typing import Any, Dict, Optional

from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from ..client_logging import client_logger
from ..config.coercion import to_server_list
from ..config.transport_config import TransportConfig
from ..constants import DEFAULT_KAFKA_SECRET_NAME, KAFKA_SECRET_KEY_BROKERS, KAFKA_SECRET_LABEL
from ..errors import OperationCancelledError, TopicError, TopicErrorCode
from .admin_client import ClosableAdminClient, TopicSpec
from .context import AdminContext

logger = logging.getLogger(__name__)


def _error_codes(**names: TopicErrorCode) -> Dict[int, TopicErrorCode]:
    # some codes only exist in newer librdkafka builds
    return {getattr(KafkaError, name): code for name, code in names.items() if hasattr(KafkaError, name)}


_TOPIC_ERROR_CODES = _error_codes(
    TOPIC_ALREADY_EXISTS=TopicErrorCode.ALREADY_EXISTS,
    UNKNOWN_TOPIC_OR_PART=TopicErrorCode.NOT_FOUND,
    UNKNOWN_TOPIC_ID=TopicErrorCode.NOT_FOUND,
    INVALID_PARTITIONS=TopicErrorCode.INVALID_CONFIGURATION,
    INVALID_REPLICATION_FACTOR=TopicErrorCode.INVALID_CONFIGURATION,
    INVALID_REPLICA_ASSIGNMENT=TopicErrorCode.INVALID_CONFIGURATION,
    INVALID_CONFIG=TopicErrorCode.INVALID_CONFIGURATION,
    INVALID_TOPIC_EXCEPTION=TopicErrorCode.INVALID_CONFIGURATION,
    INVALID_REQUEST=TopicErrorCode.INVALID_CONFIGURATION,
    POLICY_VIOLATION=TopicErrorCode.INVALID_CONFIGURATION,
    TOPIC_AUTHORIZATION_FAILED=TopicErrorCode.UNAUTHORIZED,
    CLUSTER_AUTHORIZATION_FAILED=TopicErrorCode.UNAUTHORIZED,
    SASL_AUTHENTICATION_FAILED=TopicErrorCode.UNAUTHORIZED,
    _AUTHENTICATION=TopicErrorCode.UNAUTHORIZED,
    _TRANSPORT=TopicErrorCode.UNAVAILABLE,
    _ALL_BROKERS_DOWN=TopicErrorCode.UNAVAILABLE,
    BROKER_NOT_AVAILABLE=TopicErrorCode.UNAVAILABLE,
    LEADER_NOT_AVAILABLE=TopicErrorCode.UNAVAILABLE,
    NOT_CONTROLLER=TopicErrorCode.UNAVAILABLE,
    REQUEST_TIMED_OUT=TopicErrorCode.UNAVAILABLE,
    _TIMED_OUT=TopicErrorCode.UNAVAILABLE,
)


def topic_error_from_kafka(topic: str, error: KafkaError) -> TopicError:
    """Translate a librdkafka error into a ``TopicError``."""
    code = _TOPIC_ERROR_CODES.get(error.code(), TopicErrorCode.UNKNOWN)
    return TopicError(code, topic, error.str())


def wait_for_topic(ctx: AdminContext, futures: Dict[str, concurrent.futures.Future],
                   topic_name: str, timeout: Optional[float] = None) -> Optional[TopicError]:
    """Wait for the outcome of a per-topic admin request.

    Args:
        ctx: Context bounding the wait.
        futures: Futures keyed by topic name, as returned by ``create_topics``
            and ``delete_topics``.
        topic_name: Topic whose outcome to wait for.
        timeout: Upper bound in seconds in addition to the context deadline.

    Returns:
        None on success, otherwise the TopicError. Cancellation and expiry of
        ``ctx`` are reported as ``CANCELLED``; running out of ``timeout`` alone
        is ``UNAVAILABLE``.
    """
    if topic_name not in futures:
        return TopicError(TopicErrorCode.UNKNOWN, topic_name, "no future returned")

    try:
        ctx.wait(futures[topic_name], timeout=timeout)
    except OperationCancelledError as e:
        if ctx.cancelled or ctx.expired:
            return TopicError(TopicErrorCode.CANCELLED, topic_name, str(e))
        return TopicError(TopicErrorCode.UNAVAILABLE, topic_name, f"no response within {timeout}s")
    except KafkaException as e:
        return topic_error_from_kafka(topic_name, e.args[0])
    return None


def make_admin_client(client_id: str, transport: TransportConfig, **overrides: Any) -> AdminClient:
    """Create a confluent-kafka AdminClient for the given transport.

    Client library output goes to the ``client_logger``, which is silent
    unless client logging has been enabled.

    Args:
        client_id: Client ID reported to the brokers.
        transport: Connection and security settings.
        **overrides: Additional librdkafka properties, see ``TransportConfig.to_client_config``.

    Returns:
        A configured Kafka AdminClient instance.
    """
    config = transport.to_client_config(client_id=client_id, **overrides)
    config['logger'] = client_logger
    return AdminClient(config)


class KafkaClusterAdmin(ClosableAdminClient):
    """Admin client for topics of a self-managed Kafka cluster.

    The cluster is contacted once at construction time to verify that it is
    reachable and to learn how many brokers it has; requested replication
    factors are clamped to that number.

    Attributes:
        _admin_client: The underlying confluent-kafka admin client, None once closed
        _broker_count: Number of brokers seen at construction time
        _secret_name: Name of the Kafka secret the brokers came from
    """

    def __init__(self,
                 ctx: AdminContext,
                 transport: TransportConfig,
                 *,
                 client_id: Optional[str] = None,
                 namespace: Optional[str] = None,
                 admin_client: Optional[AdminClient] = None,
                 ) -> None:
        """Connect to the cluster and verify it has brokers.

        Bootstrap servers come from ``transport``. When it has none, the
        ``brokers`` field of the labelled Kafka secret in ``namespace`` is
        used instead.

        Args:
            ctx: Context bounding the cluster verification.
            transport: Connection and security settings.
            client_id: Client ID reported to the brokers.
            namespace: Namespace holding the Kafka secret. Defaults to the
                context's system namespace.
            admin_client: Pre-built admin client to use instead of creating one.

        Raises:
            ValueError: If no bootstrap servers can be determined.
            OperationCancelledError: If ``ctx`` is cancelled or expires while
                the cluster is being described.
            KafkaException: If the cluster cannot be described.
            RuntimeError: If the cluster reports no brokers.
        """
        super().__init__()
        self._ctx = ctx
        self._namespace = namespace or ctx.system_namespace
        self._secret_name = DEFAULT_KAFKA_SECRET_NAME
        self._admin_timeout = transport.timeouts.admin.total_seconds()

        if admin_client is None:
            transport = self._resolve_brokers(ctx, transport)
            admin_client = make_admin_client(client_id or transport.client_id, transport)
        self._admin_client: Optional[AdminClient] = admin_client

        future = admin_client.describe_cluster(request_timeout=self._admin_timeout)
        cluster_info = ctx.wait(future)

        if len(cluster_info.nodes) == 0:
            logger.error("No Kafka brokers found in cluster")
            raise RuntimeError("No Kafka brokers found in cluster")

        self._broker_count = len(cluster_info.nodes)
        logger.info(f"Connected to Kafka cluster with {self._broker_count} broker(s)")

    def _resolve_brokers(self, ctx: AdminContext, transport: TransportConfig) -> TransportConfig:
        if transport.bootstrap_servers:
            return transport

        if ctx.secrets is None:
            raise ValueError("No bootstrap servers configured and no secret lister available")

        secrets = ctx.secrets.list_secrets(self._namespace, {KAFKA_SECRET_LABEL: "true"})
        for name, data in secrets.items():
            brokers = data.get(KAFKA_SECRET_KEY_BROKERS)
            if brokers:
                self._secret_name = name
                logger.debug(f"Using brokers from Kafka secret {self._namespace}/{name}")
                return transport.with_bootstrap_servers(to_server_list(brokers))

        raise ValueError(f"No bootstrap servers configured and no Kafka secret found in {self._namespace}")

    @property
    def broker_count(self) -> int:
        return self._broker_count

    def _new_topic(self, topic_name: str, spec: TopicSpec) -> NewTopic:
        replication_factor = min(spec.replication_factor, self._broker_count)
        if replication_factor < spec.replication_factor:
            logger.warning(
                f"Configured replication factor {spec.replication_factor} exceeds available brokers "
                f"({self._broker_count}). Using {replication_factor} instead."
            )

        return NewTopic(
            topic=topic_name,
            num_partitions=spec.num_partitions,
            replication_factor=replication_factor,
            config=spec.topic_config(),
        )

    def create_topic(self, topic_name: str, spec: TopicSpec,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        """Request creation of a single Kafka topic.

        Args:
            topic_name: The name of the Kafka topic to create.
            spec: Partitions, replication factor and retention of the topic.
            ctx: Context bounding the request. Defaults to the construction context.

        Returns:
            None if the topic was created, otherwise the TopicError describing
            why not (``ALREADY_EXISTS`` if the topic is already there).
        """
        admin_client = self._admin_client
        closed = self._closed_error(topic_name)
        if closed:
            return closed

        new_topic = self._new_topic(topic_name, spec)
        futures = admin_client.create_topics([new_topic], request_timeout=self._admin_timeout)
        error = wait_for_topic(ctx or self._ctx, futures, topic_name, self._admin_timeout)
        if error is None:
            logger.info(f"Successfully created topic: {topic_name}")
        elif error.code == TopicErrorCode.ALREADY_EXISTS:
            logger.debug(f"Topic {topic_name} already exists")
        else:
            logger.error(f"Failed to create topic {topic_name}: {error}")
        return error

    def delete_topic(self, topic_name: str,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        """Request deletion of a single Kafka topic.

        Returns:
            None if the topic was deleted, otherwise the TopicError describing
            why not (``NOT_FOUND`` if there is no such topic).
        """
        admin_client = self._admin_client
        closed = self._closed_error(topic_name)
        if closed:
            return closed

        futures = admin_client.delete_topics([topic_name], request_timeout=self._admin_timeout)
        error = wait_for_topic(ctx or self._ctx, futures, topic_name, self._admin_timeout)
        if error is None:
            logger.info(f"Successfully deleted topic: {topic_name}")
        elif error.code == TopicErrorCode.NOT_FOUND:
            logger.warning(f"Topic {topic_name} not found for deletion")
        else:
            logger.error(f"Failed to delete topic {topic_name}: {error}")
        return error

    def get_secret_name(self, namespace: str) -> str:
        """Return the name of the Kafka secret. The namespace is not consulted."""
        return self._secret_name

    def _close(self) -> None:
        # in-flight operations keep their own reference
        self._admin_client = None


def new_kafka_admin_client(ctx: AdminContext, transport: TransportConfig,
                           client_id: str, namespace: str) -> KafkaClusterAdmin:
    """Backend constructor for ``AdminType.KAFKA``."""
    return KafkaClusterAdmin(ctx, transport, client_id=client_id, namespace=namespace)
