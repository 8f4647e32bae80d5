"""Tests for the native Kafka admin client."""

import concurrent.futures
import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from confluent_kafka import KafkaError, KafkaException

from kafka_channel_admin.admin import AdminContext, KafkaClusterAdmin, TopicSpec
from kafka_channel_admin.admin.kafka_admin import make_admin_client, new_kafka_admin_client, topic_error_from_kafka
from kafka_channel_admin.client_logging import client_logger
from kafka_channel_admin.config import InMemorySecretStore, TransportConfig
from kafka_channel_admin.config.transport_config import Timeouts
from kafka_channel_admin.errors import OperationCancelledError, TopicErrorCode

from utils import TEST_NAMESPACE, done_future, failed_future, mock_kafka_admin

SPEC = TopicSpec(num_partitions=4, replication_factor=3, retention_millis=604800000)


def _admin(brokers: int = 3, ctx: AdminContext = None,
           admin_timeout: timedelta = timedelta(seconds=3)) -> tuple[KafkaClusterAdmin, MagicMock]:
    mock_admin = mock_kafka_admin(brokers)
    transport = TransportConfig(bootstrap_servers=["localhost:9092"], timeouts=Timeouts(admin=admin_timeout))
    admin = KafkaClusterAdmin(ctx or AdminContext(system_namespace=TEST_NAMESPACE), transport,
                              client_id="TestClientId", admin_client=mock_admin)
    return admin, mock_admin


class TestKafkaClusterAdmin:
    """Test topic management against a Kafka cluster."""

    def test_describes_cluster(self):
        """Test that construction verifies the cluster."""
        admin, mock_admin = _admin(brokers=2)

        assert admin.broker_count == 2
        mock_admin.describe_cluster.assert_called_once()

    def test_no_brokers(self):
        """Test that a cluster without brokers fails construction."""
        with pytest.raises(RuntimeError, match="No Kafka brokers"):
            _admin(brokers=0)

    def test_cancelled_construction(self):
        """Test that construction stops when the context is cancelled."""
        mock_admin = MagicMock()
        mock_admin.describe_cluster.return_value = concurrent.futures.Future()
        ctx = AdminContext(system_namespace=TEST_NAMESPACE).with_timeout(0.1)

        with pytest.raises(OperationCancelledError):
            KafkaClusterAdmin(ctx, TransportConfig(bootstrap_servers=["localhost:9092"]), admin_client=mock_admin)

    def test_create_topic(self):
        """Test creating a topic with partitions, replication and retention."""
        admin, mock_admin = _admin()

        assert admin.create_topic("my-topic", SPEC) is None

        new_topics = mock_admin.create_topics.call_args[0][0]
        assert len(new_topics) == 1
        assert new_topics[0].topic == "my-topic"
        assert new_topics[0].num_partitions == 4
        assert new_topics[0].replication_factor == 3
        assert new_topics[0].config == {"retention.ms": "604800000"}

    def test_replication_factor_clamped(self):
        """Test that the replication factor is limited to the broker count."""
        admin, mock_admin = _admin(brokers=1)

        admin.create_topic("my-topic", SPEC)

        assert mock_admin.create_topics.call_args[0][0][0].replication_factor == 1

    @pytest.mark.parametrize("code,expected", [
        (KafkaError.TOPIC_ALREADY_EXISTS, TopicErrorCode.ALREADY_EXISTS),
        (KafkaError.INVALID_PARTITIONS, TopicErrorCode.INVALID_CONFIGURATION),
        (KafkaError.INVALID_REPLICATION_FACTOR, TopicErrorCode.INVALID_CONFIGURATION),
        (KafkaError.TOPIC_AUTHORIZATION_FAILED, TopicErrorCode.UNAUTHORIZED),
        (KafkaError._TRANSPORT, TopicErrorCode.UNAVAILABLE),
        (KafkaError.UNKNOWN, TopicErrorCode.UNKNOWN),
    ])
    def test_create_topic_errors(self, code, expected):
        """Test that Kafka errors are returned as topic errors."""
        admin, mock_admin = _admin()
        mock_admin.create_topics.side_effect = lambda new_topics, **kwargs: {
            t.topic: failed_future(code) for t in new_topics
        }

        error = admin.create_topic("my-topic", SPEC)

        assert error is not None
        assert error.code == expected
        assert error.topic == "my-topic"

    def test_create_topic_cancelled(self):
        """Test that a cancelled context yields a cancelled outcome."""
        admin, mock_admin = _admin()
        mock_admin.create_topics.side_effect = lambda new_topics, **kwargs: {
            t.topic: concurrent.futures.Future() for t in new_topics
        }
        ctx = AdminContext(system_namespace=TEST_NAMESPACE)
        ctx.cancel()

        error = admin.create_topic("my-topic", SPEC, ctx=ctx)

        assert error.code == TopicErrorCode.CANCELLED

    def test_create_topic_timed_out(self):
        """Test that a request outlasting the admin timeout is unavailable, not cancelled."""
        admin, mock_admin = _admin(admin_timeout=timedelta(milliseconds=200))
        mock_admin.create_topics.side_effect = lambda new_topics, **kwargs: {
            t.topic: concurrent.futures.Future() for t in new_topics
        }

        error = admin.create_topic("my-topic", SPEC)

        assert error.code == TopicErrorCode.UNAVAILABLE

    def test_create_topic_missing_future(self):
        """Test that a response without the topic is an unknown failure."""
        admin, mock_admin = _admin()
        mock_admin.create_topics.side_effect = lambda new_topics, **kwargs: {}

        assert admin.create_topic("my-topic", SPEC).code == TopicErrorCode.UNKNOWN

    def test_delete_topic(self):
        """Test deleting a topic."""
        admin, mock_admin = _admin()

        assert admin.delete_topic("my-topic") is None
        assert mock_admin.delete_topics.call_args[0][0] == ["my-topic"]

    def test_delete_missing_topic(self):
        """Test that deleting a missing topic is reported as not found."""
        admin, mock_admin = _admin()
        mock_admin.delete_topics.side_effect = lambda names, **kwargs: {
            name: failed_future(KafkaError.UNKNOWN_TOPIC_OR_PART) for name in names
        }

        error = admin.delete_topic("my-topic")

        assert error.code == TopicErrorCode.NOT_FOUND

    def test_get_secret_name(self):
        """Test the default Kafka secret name."""
        admin, _ = _admin()

        assert admin.get_secret_name(TEST_NAMESPACE) == "kafka-cluster"

    def test_close(self):
        """Test that close is idempotent and stops further operations."""
        admin, mock_admin = _admin()

        admin.close()
        admin.close()

        assert admin.closed
        assert admin.create_topic("my-topic", SPEC).code == TopicErrorCode.UNAVAILABLE
        assert admin.delete_topic("my-topic").code == TopicErrorCode.UNAVAILABLE
        mock_admin.create_topics.assert_not_called()

    def test_close_releases_admin_client(self):
        """Test that close drops the confluent-kafka client."""
        admin, _ = _admin()

        admin.close()

        assert admin._admin_client is None

    def test_concurrent_close(self):
        """Test closing from many threads at once."""
        admin, _ = _admin()
        closes = []
        admin._close = lambda: closes.append(1)

        threads = [threading.Thread(target=admin.close) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert closes == [1]


class TestKafkaAdminConstruction:
    """Test building the confluent-kafka client."""

    def test_make_admin_client(self):
        """Test that the client is configured from the transport."""
        transport = TransportConfig(bootstrap_servers=["kafka-0:9092", "kafka-1:9092"])

        with patch('kafka_channel_admin.admin.kafka_admin.AdminClient') as admin_class:
            make_admin_client("TestClientId", transport)

        config = admin_class.call_args[0][0]
        assert config['bootstrap.servers'] == "kafka-0:9092,kafka-1:9092"
        assert config['client.id'] == "TestClientId"
        assert config['logger'] is client_logger

    def test_brokers_from_secret(self):
        """Test that brokers fall back to the labelled Kafka secret."""
        store = InMemorySecretStore()
        store.add_secret(TEST_NAMESPACE, "my-kafka", {"brokers": "kafka-0:9092"},
                         {"eventing-kafka.knative.dev/kafka-secret": "true"})
        ctx = AdminContext(system_namespace=TEST_NAMESPACE, secrets=store)

        with patch('kafka_channel_admin.admin.kafka_admin.AdminClient') as admin_class:
            admin_class.return_value = mock_kafka_admin()
            admin = new_kafka_admin_client(ctx, TransportConfig(), "TestClientId", TEST_NAMESPACE)

        assert admin_class.call_args[0][0]['bootstrap.servers'] == "kafka-0:9092"
        assert admin.get_secret_name(TEST_NAMESPACE) == "my-kafka"

    def test_no_brokers_anywhere(self):
        """Test that construction fails without brokers or a Kafka secret."""
        ctx = AdminContext(system_namespace=TEST_NAMESPACE, secrets=InMemorySecretStore())

        with pytest.raises(ValueError, match="No bootstrap servers"):
            new_kafka_admin_client(ctx, TransportConfig(), "TestClientId", TEST_NAMESPACE)

    def test_describe_failure_propagates(self):
        """Test that an unreachable cluster fails construction."""
        mock_admin = MagicMock()
        future: concurrent.futures.Future = concurrent.futures.Future()
        future.set_exception(KafkaException(KafkaError(KafkaError._ALL_BROKERS_DOWN)))
        mock_admin.describe_cluster.return_value = future

        with pytest.raises(KafkaException):
            KafkaClusterAdmin(AdminContext(system_namespace=TEST_NAMESPACE),
                              TransportConfig(bootstrap_servers=["localhost:9092"]), admin_client=mock_admin)


class TestTopicErrorMapping:
    """Test translating librdkafka errors."""

    def test_unknown_code(self):
        """Test that unmapped codes are reported as unknown."""
        error = topic_error_from_kafka("my-topic", KafkaError(KafkaError.OFFSET_OUT_OF_RANGE))

        assert error.code == TopicErrorCode.UNKNOWN

    def test_successful_future_is_no_error(self):
        """Test that a completed request maps to no error."""
        admin, mock_admin = _admin()
        mock_admin.create_topics.side_effect = lambda new_topics, **kwargs: {
            t.topic: done_future(None) for t in new_topics
        }

        assert admin.create_topic("other-topic", SPEC) is None
