"""Transport configuration for kafka-channel-admin.

This module provides the wire level configuration shared by every Kafka
client the system builds: protocol version, client identity, bootstrap
servers, TLS and SASL security, and the connection timeouts and retention
windows. It is resolved either by merging the ``sarama`` payload of the
configuration resource over the compiled-in defaults, or from the process
environment for standalone clients.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from kstreams.backends.kafka.kafka import SaslMechanism, SecurityProtocol

from ..constants import (
    ENV_BOOTSTRAP_SERVERS,
    ENV_PROTOCOL_VERSION,
    ENV_SASL_ENABLE,
    ENV_SASL_PASSWORD,
    ENV_SASL_TYPE,
    ENV_SASL_USER,
    ENV_TLS_CA_CERT,
    ENV_TLS_CERT,
    ENV_TLS_ENABLE,
    ENV_TLS_KEY,
    TRANSPORT_SETTINGS_KEY,
    system_namespace,
)
from ..errors import CredentialResolutionError, FieldCoercionError
from .base_config import BaseConfig, ValidationResult
from .coercion import (
    FieldReader,
    format_duration,
    to_bool,
    to_duration,
    to_int,
    to_server_list,
    to_str,
)
from .credentials import CredentialResolver, SecretRef

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "kafka-channel-admin"

_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+(\.\d+)?$")


@dataclass(frozen=True)
class TLSConfig:
    """TLS settings. Certificate material is PEM text."""
    enabled: bool = False
    ca_cert: str = ""
    cert: str = ""
    key: str = ""


@dataclass(frozen=True)
class SASLConfig:
    """SASL settings. ``mechanism`` is kept as written and checked by validation."""
    enabled: bool = False
    mechanism: str = SaslMechanism.PLAIN.value
    version: int = 1
    handshake: bool = True
    user: str = ""
    password: str = ""


@dataclass(frozen=True)
class Timeouts:
    """Connection timeouts and retention windows."""
    dial: timedelta = timedelta(seconds=30)
    read: timedelta = timedelta(seconds=30)
    write: timedelta = timedelta(seconds=30)
    admin: timedelta = timedelta(seconds=3)
    metadata_refresh: timedelta = timedelta(minutes=10)
    auto_commit_interval: timedelta = timedelta(seconds=1)
    offsets_retention: timedelta = timedelta(0)


class TransportConfig(BaseConfig):
    """Wire level configuration for Kafka clients.

    This class provides:
    - Protocol version and client identity
    - Bootstrap servers
    - TLS and SASL security settings with their credential material
    - Connection timeouts and retention windows
    - The confluent-kafka client configuration derived from all of the above
    """

    field_prefix = TRANSPORT_SETTINGS_KEY

    def __init__(
        self,
        *,
        version: str = "2.0.0",
        client_id: str = "",
        bootstrap_servers: Optional[list[str]] = None,
        tls: Optional[TLSConfig] = None,
        sasl: Optional[SASLConfig] = None,
        timeouts: Optional[Timeouts] = None,
        consumer_return_errors: bool = True,
    ) -> None:
        """Initialize the transport configuration.

        Args:
            version: Kafka protocol version the clients speak, e.g. '2.0.0'.
            client_id: Client identifier reported to the brokers.
            bootstrap_servers: List of Kafka broker addresses in 'host:port' format.
            tls: TLS settings. Defaults to TLS disabled.
            sasl: SASL settings. Defaults to SASL disabled.
            timeouts: Connection timeouts and retention windows.
            consumer_return_errors: Whether consumers surface errors to the caller.
        """
        super().__init__()
        self._version = version
        self._client_id = client_id
        self._bootstrap_servers = list(bootstrap_servers or [])
        self._tls = tls or TLSConfig()
        self._sasl = sasl or SASLConfig()
        self._timeouts = timeouts or Timeouts()
        self._consumer_return_errors = consumer_return_errors

    @property
    def version(self) -> str:
        """Get the Kafka protocol version."""
        return self._version

    @property
    def client_id(self) -> str:
        """Get the Kafka client ID."""
        return self._client_id

    @property
    def bootstrap_servers(self) -> list[str]:
        """Get the list of Kafka bootstrap servers."""
        return self._bootstrap_servers.copy()

    @property
    def tls(self) -> TLSConfig:
        """Get the TLS settings."""
        return self._tls

    @property
    def sasl(self) -> SASLConfig:
        """Get the SASL settings."""
        return self._sasl

    @property
    def timeouts(self) -> Timeouts:
        """Get the connection timeouts and retention windows."""
        return self._timeouts

    @property
    def consumer_return_errors(self) -> bool:
        """Check if consumers surface errors to the caller."""
        return self._consumer_return_errors

    @property
    def sasl_mechanism(self) -> SaslMechanism:
        """Get the SASL mechanism.

        Raises:
            ValueError: If the configured mechanism is not a known one.
        """
        return SaslMechanism(self._sasl.mechanism.upper())

    @property
    def security_protocol(self) -> SecurityProtocol:
        """Get the security protocol implied by the TLS and SASL settings."""
        if self._sasl.enabled:
            return SecurityProtocol.SASL_SSL if self._tls.enabled else SecurityProtocol.SASL_PLAINTEXT
        return SecurityProtocol.SSL if self._tls.enabled else SecurityProtocol.PLAINTEXT

    def with_client_id(self, client_id: str) -> "TransportConfig":
        """Return a copy of this configuration using a different client ID."""
        return self._copy(client_id=client_id)

    def with_bootstrap_servers(self, bootstrap_servers: list[str]) -> "TransportConfig":
        """Return a copy of this configuration using different bootstrap servers."""
        return self._copy(bootstrap_servers=bootstrap_servers)

    def _copy(self, **changes: Any) -> "TransportConfig":
        values = dict(
            version=self._version,
            client_id=self._client_id,
            bootstrap_servers=self._bootstrap_servers,
            tls=self._tls,
            sasl=self._sasl,
            timeouts=self._timeouts,
            consumer_return_errors=self._consumer_return_errors,
        )
        values.update(changes)
        return TransportConfig(**values)

    def to_client_config(self, client_id: Optional[str] = None, **overrides: Any) -> Dict[str, Any]:
        """Create the confluent-kafka configuration for a client of this transport.

        Args:
            client_id: Client ID to use instead of the configured one.
            **overrides: Additional librdkafka properties, using underscores in
                place of dots (``bootstrap_servers`` for ``bootstrap.servers``).

        Returns:
            A configuration dictionary suitable for ``confluent_kafka`` clients.

        Note:
            - The client ID defaults to 'kafka-channel-admin' if not configured
            - SASL credentials are only included when SASL is enabled
            - TLS material is passed inline as PEM text
        """
        config: Dict[str, Any] = {
            'bootstrap.servers': ','.join(self._bootstrap_servers),
            'client.id': client_id or self._client_id or DEFAULT_CLIENT_ID,
            'security.protocol': self.security_protocol.value,
            'broker.version.fallback': self._version,
            'socket.connection.setup.timeout.ms': _millis(self._timeouts.dial),
            'socket.timeout.ms': _millis(max(self._timeouts.read, self._timeouts.write)),
            'topic.metadata.refresh.interval.ms': _millis(self._timeouts.metadata_refresh),
        }

        if self._sasl.enabled:
            config['sasl.mechanism'] = self._sasl.mechanism.upper()
            if self._sasl.user:
                config['sasl.username'] = self._sasl.user
            if self._sasl.password:
                config['sasl.password'] = self._sasl.password

        if self._tls.enabled:
            if self._tls.ca_cert:
                config['ssl.ca.pem'] = self._tls.ca_cert
            if self._tls.cert:
                config['ssl.certificate.pem'] = self._tls.cert
            if self._tls.key:
                config['ssl.key.pem'] = self._tls.key

        for key, value in overrides.items():
            config[key.replace('_', '.')] = value

        return config

    def _validate_impl(self) -> ValidationResult:
        """Validate the transport configuration parameters."""
        errors = []
        warnings = []

        if not _VERSION_PATTERN.match(self._version or ""):
            errors.append(self._issue("Version", f"invalid protocol version '{self._version}'"))

        # TLS material must be present when TLS is on
        if self._tls.enabled:
            for name, value in (("CACert", self._tls.ca_cert), ("Cert", self._tls.cert), ("Key", self._tls.key)):
                if not value:
                    errors.append(self._issue(f"Net.TLS.{name}", "required when TLS is enabled"))

        # SASL mechanism and credentials must be usable when SASL is on
        if self._sasl.enabled:
            if self._sasl.mechanism.upper() not in {m.value for m in SaslMechanism}:
                errors.append(self._issue(
                    "Net.SASL.Mechanism",
                    f"unsupported SASL mechanism '{self._sasl.mechanism}', "
                    f"expected one of: {', '.join(m.value for m in SaslMechanism)}",
                ))
            if not self._sasl.user:
                errors.append(self._issue("Net.SASL.User", "required when SASL is enabled"))
            if not self._sasl.password:
                errors.append(self._issue("Net.SASL.Password", "required when SASL is enabled"))
        if self._sasl.version not in (0, 1):
            errors.append(self._issue("Net.SASL.Version", "must be 0 or 1"))

        for name, value in (("Net.DialTimeout", self._timeouts.dial),
                            ("Net.ReadTimeout", self._timeouts.read),
                            ("Net.WriteTimeout", self._timeouts.write),
                            ("Admin.Timeout", self._timeouts.admin)):
            if value <= timedelta(0):
                errors.append(self._issue(name, "must be greater than zero"))

        if self.security_protocol == SecurityProtocol.PLAINTEXT:
            warnings.append("Using PLAINTEXT security protocol - consider using SSL/SASL for production")
        elif self.security_protocol == SecurityProtocol.SASL_PLAINTEXT:
            warnings.append("SASL credentials are sent without TLS")

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the configuration to its payload shaped dictionary.

        The result can be fed back to ``from_dict`` and yields an equal configuration.
        """
        return {
            "Version": self._version,
            "ClientID": self._client_id,
            "BootstrapServers": self._bootstrap_servers.copy(),
            "Net": {
                "DialTimeout": format_duration(self._timeouts.dial),
                "ReadTimeout": format_duration(self._timeouts.read),
                "WriteTimeout": format_duration(self._timeouts.write),
                "TLS": {
                    "Enable": self._tls.enabled,
                    "CACert": self._tls.ca_cert,
                    "Cert": self._tls.cert,
                    "Key": self._tls.key,
                },
                "SASL": {
                    "Enable": self._sasl.enabled,
                    "Mechanism": self._sasl.mechanism,
                    "Version": self._sasl.version,
                    "Handshake": self._sasl.handshake,
                    "User": self._sasl.user,
                    "Password": self._sasl.password,
                },
            },
            "Metadata": {
                "RefreshFrequency": format_duration(self._timeouts.metadata_refresh),
            },
            "Consumer": {
                "Offsets": {
                    "AutoCommit": {
                        "Interval": format_duration(self._timeouts.auto_commit_interval),
                    },
                    "Retention": format_duration(self._timeouts.offsets_retention),
                },
                "Return": {
                    "Errors": self._consumer_return_errors,
                },
            },
            "Admin": {
                "Timeout": format_duration(self._timeouts.admin),
            },
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        resolver: Optional[CredentialResolver] = None,
        namespace: Optional[str] = None,
    ) -> 'TransportConfig':
        """Create a TransportConfig from a payload shaped dictionary.

        Fields absent from ``data`` take the constructor defaults; merging with
        the compiled-in defaults is the caller's job. Unknown keys are ignored.

        Args:
            data: Dictionary in the ``sarama`` payload shape, e.g.
            {
                'Version': '2.0.0',
                'ClientID': str,
                'BootstrapServers': list[str] or str (comma-separated),
                'Net': {
                    'DialTimeout': duration, 'ReadTimeout': duration, 'WriteTimeout': duration,
                    'TLS': {'Enable': bool, 'CACert': cred, 'Cert': cred, 'Key': cred},
                    'SASL': {'Enable': bool, 'Mechanism': str, 'Version': int,
                             'Handshake': bool, 'User': cred, 'Password': cred}
                },
                'Metadata': {'RefreshFrequency': duration},
                'Consumer': {'Offsets': {'AutoCommit': {'Interval': duration},
                                         'Retention': duration},
                             'Return': {'Errors': bool}},
                'Admin': {'Timeout': duration}
            }
            where a duration is integer nanoseconds or text like '30s', and a
            cred is either literal text or {'secretKeyRef': {'name', 'key', 'namespace'}}.
            resolver: Resolves secret references in credential fields.
            namespace: Namespace for references that do not name one.

        Returns:
            TransportConfig instance. It is not validated yet.

        Raises:
            FieldCoercionError: If a field cannot be coerced to its type.
            CredentialResolutionError: If a secret reference cannot be resolved.
        """
        root = FieldReader(data, cls.field_prefix)
        net = root.section("Net")
        tls = net.section("TLS")
        sasl = net.section("SASL")
        consumer = root.section("Consumer")
        offsets = consumer.section("Offsets")
        namespace = namespace or system_namespace()

        def credential(reader: FieldReader, name: str) -> str:
            return _read_credential(reader, name, resolver, namespace)

        defaults = Timeouts()
        timeouts = Timeouts(
            dial=net.get("DialTimeout", to_duration, defaults.dial),
            read=net.get("ReadTimeout", to_duration, defaults.read),
            write=net.get("WriteTimeout", to_duration, defaults.write),
            admin=root.section("Admin").get("Timeout", to_duration, defaults.admin),
            metadata_refresh=root.section("Metadata").get("RefreshFrequency", to_duration,
                                                          defaults.metadata_refresh),
            auto_commit_interval=offsets.section("AutoCommit").get("Interval", to_duration,
                                                                   defaults.auto_commit_interval),
            offsets_retention=offsets.get("Retention", to_duration, defaults.offsets_retention),
        )

        tls_enabled = tls.get("Enable", to_bool, False)
        sasl_enabled = sasl.get("Enable", to_bool, False)

        return cls(
            version=root.get("Version", to_str, "2.0.0"),
            client_id=root.get("ClientID", to_str, ""),
            bootstrap_servers=root.get("BootstrapServers", to_server_list, []),
            tls=TLSConfig(
                enabled=tls_enabled,
                # material is only dereferenced when it is going to be used
                ca_cert=credential(tls, "CACert") if tls_enabled else "",
                cert=credential(tls, "Cert") if tls_enabled else "",
                key=credential(tls, "Key") if tls_enabled else "",
            ),
            sasl=SASLConfig(
                enabled=sasl_enabled,
                mechanism=sasl.get("Mechanism", to_str, SaslMechanism.PLAIN.value),
                version=sasl.get("Version", to_int, 1),
                handshake=sasl.get("Handshake", to_bool, True),
                user=credential(sasl, "User") if sasl_enabled else "",
                password=credential(sasl, "Password") if sasl_enabled else "",
            ),
            timeouts=timeouts,
            consumer_return_errors=consumer.section("Return").get("Errors", to_bool, True),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'TransportConfig':
        """Create a validated TransportConfig from environment variables.

        Reads KAFKA_BOOTSTRAP_SERVERS (required), KAFKA_NET_TLS_ENABLE,
        KAFKA_NET_TLS_CERT, KAFKA_NET_TLS_KEY, KAFKA_NET_TLS_CA_CERT,
        KAFKA_NET_SASL_ENABLE, KAFKA_NET_SASL_USER, KAFKA_NET_SASL_PASSWORD and
        KAFKA_NET_SASL_TYPE. The protocol version is fixed to 2.0.0.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            FieldCoercionError: If a variable is missing or invalid, or the
                resulting configuration fails validation.
        """
        env = os.environ if environ is None else environ

        def read(name: str, coerce, default):
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                return coerce(raw)
            except ValueError as e:
                raise FieldCoercionError(name, raw, str(e)) from e

        bootstrap_servers = read(ENV_BOOTSTRAP_SERVERS, to_server_list, [])
        if not bootstrap_servers:
            raise FieldCoercionError(ENV_BOOTSTRAP_SERVERS, env.get(ENV_BOOTSTRAP_SERVERS), "required")

        tls_enabled = read(ENV_TLS_ENABLE, to_bool, False)
        sasl_enabled = read(ENV_SASL_ENABLE, to_bool, False)

        config = cls(
            version=ENV_PROTOCOL_VERSION,
            bootstrap_servers=bootstrap_servers,
            tls=TLSConfig(
                enabled=tls_enabled,
                ca_cert=env.get(ENV_TLS_CA_CERT, "") if tls_enabled else "",
                cert=env.get(ENV_TLS_CERT, "") if tls_enabled else "",
                key=env.get(ENV_TLS_KEY, "") if tls_enabled else "",
            ),
            sasl=SASLConfig(
                enabled=sasl_enabled,
                mechanism=env.get(ENV_SASL_TYPE) or SaslMechanism.PLAIN.value,
                user=env.get(ENV_SASL_USER, "") if sasl_enabled else "",
                password=env.get(ENV_SASL_PASSWORD, "") if sasl_enabled else "",
            ),
        )
        config.validate()
        return config


def _read_credential(reader: FieldReader, name: str,
                     resolver: Optional[CredentialResolver], namespace: str) -> str:
    raw = reader.raw(name)
    if not isinstance(raw, Mapping):
        return reader.get(name, to_str, "")

    field_name = reader.field_path(name)
    try:
        ref = SecretRef.from_overlay(raw, namespace)
    except ValueError as e:
        raise FieldCoercionError(field_name, raw, str(e)) from e

    if resolver is None:
        raise CredentialResolutionError(field_name, ref, "no credential resolver configured")

    value = resolver.resolve(ref)
    if value is None:
        logger.error(f"Failed to resolve {field_name} from {ref}")
        raise CredentialResolutionError(field_name, ref)
    return value


def _millis(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)
