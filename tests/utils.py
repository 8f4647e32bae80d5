import concurrent.futures
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

from confluent_kafka import KafkaError, KafkaException

from kafka_channel_admin.admin.admin_client import TopicSpec
from kafka_channel_admin.admin.context import AdminContext
from kafka_channel_admin.config.sources import RawOverlay
from kafka_channel_admin.errors import TopicError

TEST_NAMESPACE = "knative-eventing"

SARAMA_YAML = """
Version: 2.0.0
Net:
  TLS:
    Enable: false
  SASL:
    Enable: false
Metadata:
  RefreshFrequency: 300000000000
Consumer:
  Offsets:
    AutoCommit:
      Interval: 5000000000
    Retention: 604800000000000
  Return:
    Errors: true
"""

EVENTING_KAFKA_YAML = """
receiver:
  cpuRequest: 100m
  memoryRequest: 50Mi
  replicas: 1
dispatcher:
  cpuRequest: 100m
  memoryRequest: 50Mi
  replicas: 1
kafka:
  topic:
    defaultNumPartitions: 4
    defaultReplicationFactor: 1
    defaultRetentionMillis: 604800000
  adminType: kafka
"""

SASL_SARAMA_YAML = """
Version: 2.3.0
ClientID: channel-controller
BootstrapServers: broker-0.kafka:9092,broker-1.kafka:9092
Net:
  TLS:
    Enable: true
    CACert: ca-pem
    Cert: cert-pem
    Key: key-pem
  SASL:
    Enable: true
    Mechanism: SCRAM-SHA-512
    User: admin
    Password: s3cret
"""


def make_overlay(sarama: Optional[str] = SARAMA_YAML,
                 eventing_kafka: Optional[str] = EVENTING_KAFKA_YAML,
                 namespace: str = TEST_NAMESPACE,
                 **extra: str) -> RawOverlay:
    """Build an overlay carrying the given payloads. ``None`` leaves a payload out."""
    data: Dict[str, str] = {}
    if sarama is not None:
        data["sarama"] = sarama
    if eventing_kafka is not None:
        data["eventing-kafka"] = eventing_kafka
    data.update(extra)
    return RawOverlay(name="config-kafka", namespace=namespace, data=data)


def done_future(result: Any = None) -> concurrent.futures.Future:
    future: concurrent.futures.Future = concurrent.futures.Future()
    future.set_result(result)
    return future


def failed_future(code: int) -> concurrent.futures.Future:
    future: concurrent.futures.Future = concurrent.futures.Future()
    future.set_exception(KafkaException(KafkaError(code)))
    return future


def mock_kafka_admin(brokers: int = 3, topics: Optional[List[str]] = None) -> MagicMock:
    """A confluent-kafka AdminClient double whose requests all succeed."""
    admin = MagicMock()
    admin.describe_cluster.return_value = done_future(MagicMock(nodes=[object() for _ in range(brokers)]))
    admin.create_topics.side_effect = lambda new_topics, **kwargs: {t.topic: done_future() for t in new_topics}
    admin.delete_topics.side_effect = lambda names, **kwargs: {name: done_future() for name in names}
    admin.list_topics.return_value = MagicMock(topics={name: object() for name in topics or []})
    return admin


@dataclass
class MockAdminClient:
    """Admin client double recording the calls it receives."""
    secret_name: str = ""
    created: List[Tuple[str, TopicSpec]] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    close_calls: int = 0

    def create_topic(self, name: str, spec: TopicSpec,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        self.created.append((name, spec))
        return None

    def delete_topic(self, name: str, ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        self.deleted.append(name)
        return None

    def get_secret_name(self, namespace: str) -> str:
        return self.secret_name

    def close(self) -> None:
        self.close_calls += 1
