"""Tests for the configuration merge."""

import logging
import os
import tempfile
from datetime import timedelta

import pytest

from kafka_channel_admin.admin import AdminType
from kafka_channel_admin.client_logging import client_logger, enable_client_logging
from kafka_channel_admin.config import (
    ConfigMerger,
    Defaults,
    DEFAULTS,
    InMemorySecretStore,
    ManifestOverlaySource,
    RawOverlay,
    StaticOverlaySource,
    load_settings,
    merge,
)
from kafka_channel_admin.config.coercion import Quantity
from kafka_channel_admin.errors import (
    ConfigurationError,
    CredentialResolutionError,
    EmptyOverlayError,
    FieldCoercionError,
    MalformedOverlayError,
    MissingPayloadKeyError,
    SourceUnavailableError,
)

from utils import EVENTING_KAFKA_YAML, SARAMA_YAML, make_overlay


class TestMergeFailures:
    """Test that each failure mode is raised distinctly."""

    def test_missing_overlay(self):
        """Test that a missing resource is reported as unavailable."""
        with pytest.raises(SourceUnavailableError):
            merge(DEFAULTS, None)

    @pytest.mark.parametrize("data", [None, {}])
    def test_empty_overlay(self, data):
        """Test that a resource without data is reported as empty."""
        overlay = RawOverlay(name="config-kafka", namespace="knative-eventing", data=data)

        with pytest.raises(EmptyOverlayError) as exc_info:
            merge(DEFAULTS, overlay)

        assert not isinstance(exc_info.value, MissingPayloadKeyError)

    def test_missing_app_payload(self):
        """Test that a resource without the application payload fails."""
        with pytest.raises(MissingPayloadKeyError) as exc_info:
            merge(DEFAULTS, make_overlay(eventing_kafka=None))

        assert exc_info.value.key == "eventing-kafka"

    @pytest.mark.parametrize("key", ["sarama", "eventing-kafka"])
    def test_malformed_payload(self, key):
        """Test that unparsable text in either payload is reported as malformed."""
        overlay = make_overlay(**{key.replace("-", "_"): "Net: [unclosed\n  : bad"})

        with pytest.raises(MalformedOverlayError) as exc_info:
            merge(DEFAULTS, overlay)

        assert exc_info.value.key == key

    def test_failure_modes_are_distinguishable(self):
        """Test that the three overlay failures are separate types."""
        errors = []
        for overlay in (None,
                        RawOverlay(namespace="knative-eventing", data={}),
                        make_overlay(eventing_kafka="{{{")):
            with pytest.raises(ConfigurationError) as exc_info:
                merge(DEFAULTS, overlay)
            errors.append(type(exc_info.value))

        assert errors == [SourceUnavailableError, EmptyOverlayError, MalformedOverlayError]

    def test_nothing_returned_on_failure(self):
        """Test that a failure after a valid transport payload returns nothing."""
        result = None
        with pytest.raises(FieldCoercionError):
            result = merge(DEFAULTS, make_overlay(eventing_kafka="kafka:\n  topic:\n    defaultNumPartitions: 0\n"))

        assert result is None

    def test_invalid_transport_invariant(self):
        """Test that transport invariants are enforced by the merge."""
        with pytest.raises(FieldCoercionError) as exc_info:
            merge(DEFAULTS, make_overlay(sarama="Net:\n  TLS:\n    Enable: true\n"))

        assert exc_info.value.field.startswith("sarama.Net.TLS.")

    @pytest.mark.parametrize("sarama,field", [
        ("Consumer:\n  Offsets:\n    Retention: 100000000000000000000000000000\n", "sarama.Consumer.Offsets.Retention"),
        ("Net:\n  DialTimeout: 99999999999999h\n", "sarama.Net.DialTimeout"),
    ])
    def test_duration_out_of_range(self, sarama, field):
        """Test that a duration too large to represent fails on its field."""
        with pytest.raises(FieldCoercionError) as exc_info:
            merge(DEFAULTS, make_overlay(sarama=sarama))

        assert exc_info.value.field == field

    def test_unresolvable_credential(self):
        """Test that a secret reference without a resolver fails."""
        sarama = ("Net:\n  SASL:\n    Enable: true\n    User: admin\n"
                  "    Password:\n      secretKeyRef:\n        name: kafka-auth\n        key: password\n")

        with pytest.raises(CredentialResolutionError):
            merge(DEFAULTS, make_overlay(sarama=sarama))


class TestMerge:
    """Test successful merges."""

    def test_merge_defaults_overlay(self):
        """Test merging the standard overlay over the defaults."""
        transport, app = merge(DEFAULTS, make_overlay())

        assert transport.version == "2.0.0"
        assert transport.timeouts.metadata_refresh == timedelta(minutes=5)
        assert transport.timeouts.auto_commit_interval == timedelta(seconds=5)
        assert transport.timeouts.offsets_retention == timedelta(days=7)
        assert transport.timeouts.dial == timedelta(seconds=30)
        assert app.topic.num_partitions == 4
        assert app.topic.replication_factor == 1
        assert app.topic.retention_millis == 604800000
        assert app.admin_type == AdminType.KAFKA

    def test_missing_transport_payload_keeps_defaults(self):
        """Test that a resource without the transport payload uses transport defaults."""
        transport, _ = merge(DEFAULTS, make_overlay(sarama=None))

        assert transport.to_dict() == merge(DEFAULTS, make_overlay(sarama=""))[0].to_dict()
        assert transport.timeouts.metadata_refresh == timedelta(minutes=10)

    def test_blank_payload_is_empty(self):
        """Test that a blank application payload merges to the defaults."""
        _, app = merge(DEFAULTS, make_overlay(eventing_kafka=""))

        assert app.to_dict() == merge(DEFAULTS, make_overlay(eventing_kafka="{}"))[1].to_dict()

    def test_deterministic(self):
        """Test that identical inputs produce identical configurations."""
        first = merge(DEFAULTS, make_overlay())
        second = merge(DEFAULTS, make_overlay())

        assert first[0] == second[0]
        assert first[1] == second[1]
        assert first[0].to_dict() == second[0].to_dict()
        assert first[1].to_dict() == second[1].to_dict()

    def test_absent_values_keep_defaults(self):
        """Test that quantity and duration defaults absent from the overlay appear unchanged."""
        transport, app = merge(DEFAULTS, make_overlay(sarama="Version: 2.0.0\n",
                                                      eventing_kafka="kafka:\n  adminType: kafka\n"))

        assert app.receiver.cpu_request == Quantity.parse("100m")
        assert str(app.receiver.cpu_request) == "100m"
        assert str(app.dispatcher.memory_request) == "50Mi"
        assert transport.timeouts.dial == timedelta(seconds=30)
        assert transport.timeouts.admin == timedelta(seconds=3)

    def test_present_values_override_defaults(self):
        """Test that quantity and duration values in the overlay fully replace the defaults."""
        transport, app = merge(DEFAULTS, make_overlay(
            sarama="Net:\n  DialTimeout: 5s\nAdmin:\n  Timeout: 1m\n",
            eventing_kafka="receiver:\n  cpuRequest: 250m\ndispatcher:\n  memoryRequest: 1Gi\n",
        ))

        assert str(app.receiver.cpu_request) == "250m"
        assert str(app.dispatcher.memory_request) == "1Gi"
        assert str(app.receiver.memory_request) == "50Mi"
        assert transport.timeouts.dial == timedelta(seconds=5)
        assert transport.timeouts.admin == timedelta(minutes=1)

    def test_scenario_cloud_backend(self):
        """Test the Event Hubs scenario overlay."""
        _, app = merge(DEFAULTS, make_overlay(eventing_kafka="""
kafka:
  topic:
    defaultNumPartitions: 4
    defaultReplicationFactor: 1
    defaultRetentionMillis: 604800000
  adminType: azure
"""))

        assert app.admin_type == AdminType.EVENTHUB
        assert app.topic.num_partitions == 4

    def test_unknown_admin_type_merges(self):
        """Test that an unrecognized admin type does not fail the merge."""
        _, app = merge(DEFAULTS, make_overlay(eventing_kafka="kafka:\n  adminType: bogus\n"))

        assert app.admin_type == AdminType.UNKNOWN

    def test_unknown_keys_ignored(self):
        """Test that keys outside the schema are ignored."""
        transport, app = merge(DEFAULTS, make_overlay(
            sarama=SARAMA_YAML + "Producer:\n  Idempotent: true\n",
            eventing_kafka=EVENTING_KAFKA_YAML + "cloudevents:\n  maxIdleConns: 1000\n",
        ))

        assert transport.to_dict() == merge(DEFAULTS, make_overlay())[0].to_dict()
        assert app.to_dict() == merge(DEFAULTS, make_overlay())[1].to_dict()

    def test_only_unknown_keys_logged(self, caplog):
        """Test that resource limits are read as known settings and not reported as ignored."""
        with caplog.at_level(logging.DEBUG, logger="kafka_channel_admin.config.merger"):
            _, app = merge(DEFAULTS, make_overlay(
                eventing_kafka="receiver:\n  cpuLimit: 500m\n  memoryLimit: 1Gi\n  bogus: 1\n"))

        ignored = [r.getMessage() for r in caplog.records if "Ignoring unknown setting" in r.getMessage()]
        assert ignored == ["Ignoring unknown setting eventing-kafka.receiver.bogus"]
        assert str(app.receiver.cpu_limit) == "500m"
        assert app.dispatcher.cpu_limit is None

    def test_client_id_override(self):
        """Test that the client_id argument replaces the configured one."""
        transport, _ = merge(DEFAULTS, make_overlay(sarama="ClientID: from-overlay\n"), client_id="controller")

        assert transport.client_id == "controller"

    def test_client_id_from_overlay(self):
        """Test that the configured client ID is kept without an override."""
        transport, _ = merge(DEFAULTS, make_overlay(sarama="ClientID: from-overlay\n"))

        assert transport.client_id == "from-overlay"

    def test_credentials_resolved(self):
        """Test that secret references are resolved in the overlay namespace."""
        store = InMemorySecretStore()
        store.add_secret("eventing", "kafka-auth", {"user": "admin", "password": "pw"})
        sarama = ("Net:\n  SASL:\n    Enable: true\n"
                  "    User: {secretKeyRef: {name: kafka-auth, key: user}}\n"
                  "    Password: {secretKeyRef: {name: kafka-auth, key: password}}\n")

        transport, _ = ConfigMerger(DEFAULTS, store).merge(make_overlay(sarama=sarama, namespace="eventing"))

        assert transport.sasl.user == "admin"
        assert transport.sasl.password == "pw"

    def test_custom_defaults(self):
        """Test merging over a caller supplied defaults registry."""
        defaults = Defaults()
        defaults.app["kafka"]["topic"]["defaultNumPartitions"] = 16

        _, app = merge(defaults, make_overlay(eventing_kafka="kafka:\n  adminType: custom\n"))

        assert app.topic.num_partitions == 16
        assert DEFAULTS.app["kafka"]["topic"]["defaultNumPartitions"] == 4

    def test_defaults_not_mutated(self):
        """Test that merging leaves the defaults untouched."""
        before = DEFAULTS.transport_settings(), DEFAULTS.app_settings()

        merge(DEFAULTS, make_overlay(sarama="Net:\n  DialTimeout: 1s\n",
                                     eventing_kafka="kafka:\n  topic:\n    defaultNumPartitions: 9\n"))

        assert (DEFAULTS.transport_settings(), DEFAULTS.app_settings()) == before


class TestLoadSettings:
    """Test loading settings through an overlay source."""

    def setup_method(self):
        enable_client_logging(False)

    def teardown_method(self):
        enable_client_logging(False)

    def test_load_settings(self):
        """Test loading from a static source."""
        transport, app = load_settings(StaticOverlaySource(make_overlay()), client_id="controller")

        assert transport.client_id == "controller"
        assert app.admin_type == AdminType.KAFKA
        assert client_logger.disabled

    def test_load_settings_enables_client_logging(self):
        """Test that the client logging toggle is applied."""
        overlay = make_overlay(eventing_kafka=EVENTING_KAFKA_YAML + "  enableClientLogging: true\n")

        load_settings(StaticOverlaySource(overlay))

        assert not client_logger.disabled
        assert client_logger.isEnabledFor(logging.DEBUG)

    def test_load_settings_missing_source(self):
        """Test that a source without a resource fails."""
        with pytest.raises(SourceUnavailableError):
            load_settings(StaticOverlaySource(None))

    def test_load_from_manifest(self):
        """Test loading from a ConfigMap style manifest on disk."""
        manifest = (
            "apiVersion: v1\n"
            "kind: ConfigMap\n"
            "metadata:\n"
            "  name: config-kafka\n"
            "  namespace: eventing\n"
            "data:\n"
            "  sarama: |\n"
            "    Net:\n"
            "      DialTimeout: 10s\n"
            "  eventing-kafka: |\n"
            "    kafka:\n"
            "      adminType: custom\n"
        )
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(manifest)
            manifest_file = f.name

        try:
            transport, app = load_settings(ManifestOverlaySource(manifest_file))

            assert transport.timeouts.dial == timedelta(seconds=10)
            assert app.admin_type == AdminType.CUSTOM
        finally:
            os.unlink(manifest_file)

    def test_load_from_missing_manifest(self):
        """Test that a missing manifest is reported as unavailable."""
        with pytest.raises(SourceUnavailableError):
            load_settings(ManifestOverlaySource("/nonexistent/config-kafka.yaml"))
