import os

# Configuration resource
DEFAULT_SYSTEM_NAMESPACE = "knative-eventing"
SYSTEM_NAMESPACE_ENV_KEY = "SYSTEM_NAMESPACE"
SETTINGS_CONFIG_NAME = "config-kafka"
TRANSPORT_SETTINGS_KEY = "sarama"
APP_SETTINGS_KEY = "eventing-kafka"

# Kafka secrets
KAFKA_SECRET_LABEL = "eventing-kafka.knative.dev/kafka-secret"
DEFAULT_KAFKA_SECRET_NAME = "kafka-cluster"
KAFKA_SECRET_KEY_BROKERS = "brokers"
KAFKA_SECRET_KEY_PASSWORD = "password"
KAFKA_SECRET_KEY_NAMESPACE = "namespace"

# Environment bootstrap
ENV_BOOTSTRAP_SERVERS = "KAFKA_BOOTSTRAP_SERVERS"
ENV_TLS_ENABLE = "KAFKA_NET_TLS_ENABLE"
ENV_TLS_CERT = "KAFKA_NET_TLS_CERT"
ENV_TLS_KEY = "KAFKA_NET_TLS_KEY"
ENV_TLS_CA_CERT = "KAFKA_NET_TLS_CA_CERT"
ENV_SASL_ENABLE = "KAFKA_NET_SASL_ENABLE"
ENV_SASL_USER = "KAFKA_NET_SASL_USER"
ENV_SASL_PASSWORD = "KAFKA_NET_SASL_PASSWORD"
ENV_SASL_TYPE = "KAFKA_NET_SASL_TYPE"
ENV_PROTOCOL_VERSION = "2.0.0"

# Azure Event Hubs
EVENTHUB_MAX_HUBS_PER_NAMESPACE = 10
EVENTHUB_MAX_PARTITIONS = 32
EVENTHUB_MIN_RETENTION_MILLIS = 24 * 60 * 60 * 1000
EVENTHUB_MAX_RETENTION_MILLIS = 7 * 24 * 60 * 60 * 1000
EVENTHUB_KAFKA_PORT = 9093
EVENTHUB_SASL_USERNAME = "$ConnectionString"

# Custom sidecar
DEFAULT_SIDECAR_URL = "http://localhost:8888"
SIDECAR_TOPICS_PATH = "/topics"


def system_namespace() -> str:
    """Return the namespace the system components run in."""
    return os.environ.get(SYSTEM_NAMESPACE_ENV_KEY) or DEFAULT_SYSTEM_NAMESPACE
