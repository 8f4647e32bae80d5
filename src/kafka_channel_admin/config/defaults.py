"""Compiled-in configuration defaults.

Defaults are kept in the same raw shape as the overlay payloads so that
resolving a configuration is a leaf-level merge of two mappings followed by
coercion. ``DEFAULTS`` is never mutated; accessors hand out deep copies.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

TRANSPORT_DEFAULTS: Dict[str, Any] = {
    "Version": "2.0.0",
    "ClientID": "",
    "BootstrapServers": [],
    "Net": {
        "DialTimeout": "30s",
        "ReadTimeout": "30s",
        "WriteTimeout": "30s",
        "TLS": {
            "Enable": False,
            "CACert": "",
            "Cert": "",
            "Key": "",
        },
        "SASL": {
            "Enable": False,
            "Mechanism": "PLAIN",
            "Version": 1,
            "Handshake": True,
            "User": "",
            "Password": "",
        },
    },
    "Metadata": {
        "RefreshFrequency": "10m",
    },
    "Consumer": {
        "Offsets": {
            "AutoCommit": {
                "Interval": "1s",
            },
            "Retention": 0,
        },
        "Return": {
            "Errors": True,
        },
    },
    "Admin": {
        "Timeout": "3s",
    },
}

APP_DEFAULTS: Dict[str, Any] = {
    "receiver": {
        "cpuRequest": "100m",
        "cpuLimit": "",
        "memoryRequest": "50Mi",
        "memoryLimit": "",
        "replicas": 1,
    },
    "dispatcher": {
        "cpuRequest": "100m",
        "cpuLimit": "",
        "memoryRequest": "50Mi",
        "memoryLimit": "",
        "replicas": 1,
    },
    "kafka": {
        "topic": {
            "defaultNumPartitions": 4,
            "defaultReplicationFactor": 1,
            "defaultRetentionMillis": 604800000,
        },
        "adminType": "kafka",
        "enableClientLogging": False,
    },
}


@dataclass(frozen=True)
class Defaults:
    """Baseline transport and application settings a merge starts from."""
    transport: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(TRANSPORT_DEFAULTS))
    app: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(APP_DEFAULTS))

    def transport_settings(self) -> Dict[str, Any]:
        """Return a private copy of the transport defaults."""
        return copy.deepcopy(self.transport)

    def app_settings(self) -> Dict[str, Any]:
        """Return a private copy of the application defaults."""
        return copy.deepcopy(self.app)


DEFAULTS = Defaults()
