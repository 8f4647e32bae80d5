"""Application configuration for kafka-channel-admin.

This module provides the application level settings resolved from the
``eventing-kafka`` payload: topic defaults, per-role resource sizing and
replica counts, and the admin type selecting the backend variant.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..admin.admin_client import TopicSpec
from ..admin.admin_type import AdminType
from ..constants import APP_SETTINGS_KEY
from .base_config import BaseConfig, ValidationResult
from .coercion import FieldReader, Quantity, to_bool, to_int, to_quantity, to_str

logger = logging.getLogger(__name__)

INT16_MAX = 2 ** 15 - 1
INT32_MAX = 2 ** 31 - 1
INT64_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class RoleSizing:
    """Resource requests, limits and replica count of one deployed role.

    Absent quantities (``None``) mean the value is left unset.
    """
    cpu_request: Optional[Quantity] = None
    cpu_limit: Optional[Quantity] = None
    memory_request: Optional[Quantity] = None
    memory_limit: Optional[Quantity] = None
    replicas: int = 1

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in (("cpuRequest", self.cpu_request), ("cpuLimit", self.cpu_limit),
                           ("memoryRequest", self.memory_request), ("memoryLimit", self.memory_limit)):
            if value is not None:
                result[key] = str(value)
        result["replicas"] = self.replicas
        return result

    @classmethod
    def read(cls, reader: FieldReader) -> "RoleSizing":
        return cls(
            cpu_request=reader.get("cpuRequest", to_quantity),
            cpu_limit=reader.get("cpuLimit", to_quantity),
            memory_request=reader.get("memoryRequest", to_quantity),
            memory_limit=reader.get("memoryLimit", to_quantity),
            # range checked by validation so the message names the invariant
            replicas=reader.get("replicas", to_int, 1),
        )


@dataclass(frozen=True)
class TopicDefaults:
    """Sizing applied to topics that do not specify their own."""
    num_partitions: int = 4
    replication_factor: int = 1
    retention_millis: int = 604800000

    def to_topic_spec(self, config: Optional[Mapping[str, str]] = None) -> TopicSpec:
        """Create a topic spec carrying these defaults."""
        return TopicSpec(
            num_partitions=self.num_partitions,
            replication_factor=self.replication_factor,
            retention_millis=self.retention_millis,
            config=dict(config or {}),
        )


class AppConfig(BaseConfig):
    """Application level configuration.

    This class provides:
    - Topic defaults (partitions, replication factor, retention)
    - Resource sizing and replica counts for the receiver and dispatcher roles
    - The admin type selecting which backend manages topics
    - The client library logging toggle
    """

    field_prefix = APP_SETTINGS_KEY

    def __init__(
        self,
        *,
        receiver: Optional[RoleSizing] = None,
        dispatcher: Optional[RoleSizing] = None,
        topic: Optional[TopicDefaults] = None,
        admin_type: AdminType = AdminType.KAFKA,
        enable_client_logging: bool = False,
    ) -> None:
        """Initialize the application configuration.

        Args:
            receiver: Sizing of the receiver role.
            dispatcher: Sizing of the dispatcher role.
            topic: Defaults applied to new topics.
            admin_type: Backend variant used to manage topics.
            enable_client_logging: Whether Kafka client library logs are emitted.
        """
        super().__init__()
        self._receiver = receiver or RoleSizing()
        self._dispatcher = dispatcher or RoleSizing()
        self._topic = topic or TopicDefaults()
        self._admin_type = admin_type
        self._enable_client_logging = enable_client_logging

    @property
    def receiver(self) -> RoleSizing:
        """Get the receiver sizing."""
        return self._receiver

    @property
    def dispatcher(self) -> RoleSizing:
        """Get the dispatcher sizing."""
        return self._dispatcher

    @property
    def topic(self) -> TopicDefaults:
        """Get the topic defaults."""
        return self._topic

    @property
    def admin_type(self) -> AdminType:
        """Get the backend variant."""
        return self._admin_type

    @property
    def enable_client_logging(self) -> bool:
        """Check if Kafka client library logging is enabled."""
        return self._enable_client_logging

    def _validate_impl(self) -> ValidationResult:
        """Validate the application configuration parameters."""
        errors = []
        warnings = []

        if not 0 < self._topic.num_partitions <= INT32_MAX:
            errors.append(self._issue("kafka.topic.defaultNumPartitions",
                                      f"must be greater than 0, got {self._topic.num_partitions}"))
        if not 1 <= self._topic.replication_factor <= INT16_MAX:
            errors.append(self._issue("kafka.topic.defaultReplicationFactor",
                                      f"must be at least 1, got {self._topic.replication_factor}"))
        if not 0 <= self._topic.retention_millis <= INT64_MAX:
            errors.append(self._issue("kafka.topic.defaultRetentionMillis",
                                      f"must not be negative, got {self._topic.retention_millis}"))

        for role, sizing in (("receiver", self._receiver), ("dispatcher", self._dispatcher)):
            if not 0 <= sizing.replicas <= INT32_MAX:
                errors.append(self._issue(f"{role}.replicas", f"must not be negative, got {sizing.replicas}"))
            if sizing.cpu_request and sizing.cpu_limit and sizing.cpu_request.value > sizing.cpu_limit.value:
                warnings.append(f"{role}: cpuRequest {sizing.cpu_request} exceeds cpuLimit {sizing.cpu_limit}")
            if (sizing.memory_request and sizing.memory_limit
                    and sizing.memory_request.value > sizing.memory_limit.value):
                warnings.append(
                    f"{role}: memoryRequest {sizing.memory_request} exceeds memoryLimit {sizing.memory_limit}")

        if self._admin_type == AdminType.UNKNOWN:
            warnings.append("Unknown admin type - no admin client can be created")

        if self._topic.replication_factor == 1:
            warnings.append("Replication factor of 1 provides no fault tolerance")

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the configuration to its payload shaped dictionary."""
        return {
            "receiver": self._receiver.to_dict(),
            "dispatcher": self._dispatcher.to_dict(),
            "kafka": {
                "topic": {
                    "defaultNumPartitions": self._topic.num_partitions,
                    "defaultReplicationFactor": self._topic.replication_factor,
                    "defaultRetentionMillis": self._topic.retention_millis,
                },
                "adminType": self._admin_type.value,
                "enableClientLogging": self._enable_client_logging,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AppConfig':
        """Create an AppConfig from a payload shaped dictionary.

        Args:
            data: Dictionary in the ``eventing-kafka`` payload shape:
            {
                'receiver': {'cpuRequest': quantity, 'cpuLimit': quantity,
                             'memoryRequest': quantity, 'memoryLimit': quantity,
                             'replicas': int},
                'dispatcher': {...same as receiver...},
                'kafka': {
                    'topic': {'defaultNumPartitions': int,
                              'defaultReplicationFactor': int,
                              'defaultRetentionMillis': int},
                    'adminType': 'kafka' | 'azure' | 'custom',
                    'enableClientLogging': bool
                }
            }

        Returns:
            AppConfig instance. It is not validated yet.

        Raises:
            FieldCoercionError: If a field cannot be coerced to its type.
        """
        root = FieldReader(data, cls.field_prefix)
        kafka = root.section("kafka")
        topic = kafka.section("topic")
        defaults = TopicDefaults()

        raw_admin_type = kafka.get("adminType", to_str, AdminType.KAFKA.value)
        admin_type = AdminType.parse(raw_admin_type)
        if admin_type == AdminType.UNKNOWN:
            logger.warning(f"Unrecognized admin type '{raw_admin_type}'")

        return cls(
            receiver=RoleSizing.read(root.section("receiver")),
            dispatcher=RoleSizing.read(root.section("dispatcher")),
            topic=TopicDefaults(
                num_partitions=topic.get("defaultNumPartitions", to_int, defaults.num_partitions),
                replication_factor=topic.get("defaultReplicationFactor", to_int, defaults.replication_factor),
                retention_millis=topic.get("defaultRetentionMillis", to_int, defaults.retention_millis),
            ),
            admin_type=admin_type,
            enable_client_logging=kafka.get("enableClientLogging", to_bool, False),
        )
