"""Credential resolution.

TLS and SASL material may be given inline in the transport payload or as a
reference to a secret. References are resolved through a ``CredentialResolver``
at merge time. Backends that need to discover their credential resources
(rather than dereference a known one) use a ``SecretLister``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Union

logger = logging.getLogger(__name__)

SECRET_REF_KEY = "secretKeyRef"


@dataclass(frozen=True)
class SecretRef:
    """Reference to a single field of a secret."""
    namespace: str
    name: str
    key: str

    def __str__(self) -> str:
        return f"secret {self.namespace}/{self.name}[{self.key}]"

    @classmethod
    def from_overlay(cls, raw: Mapping[str, Any], default_namespace: str) -> "SecretRef":
        """Build a reference from its overlay form.

        Accepts ``{secretKeyRef: {name, key, namespace?}}`` or the inner
        mapping directly.

        Raises:
            ValueError: If name or key are missing.
        """
        body = raw.get(SECRET_REF_KEY, raw)
        if not isinstance(body, Mapping):
            raise ValueError(f"{SECRET_REF_KEY} must be a mapping")

        name = body.get("name")
        key = body.get("key")
        if not name or not isinstance(name, str):
            raise ValueError("secret reference requires a 'name'")
        if not key or not isinstance(key, str):
            raise ValueError("secret reference requires a 'key'")

        namespace = body.get("namespace") or default_namespace
        return cls(namespace=str(namespace), name=name, key=key)


class CredentialResolver(Protocol):
    """Resolves a secret reference to its value, or None when it does not exist."""

    def resolve(self, ref: SecretRef) -> Optional[str]:
        ...


class SecretLister(Protocol):
    """Lists the secrets of a namespace carrying all of the given labels."""

    def list_secrets(self, namespace: str, labels: Mapping[str, str]) -> Dict[str, Dict[str, str]]:
        ...


@dataclass
class _StoredSecret:
    data: Dict[str, str]
    labels: Dict[str, str]


class InMemorySecretStore:
    """Secret store kept in process memory.

    Serves both as a credential resolver and as a secret lister. Intended for
    tests and for embedding callers that already hold their secrets.
    """

    def __init__(self) -> None:
        self._secrets: Dict[tuple[str, str], _StoredSecret] = {}

    def add_secret(self, namespace: str, name: str, data: Mapping[str, Any],
                   labels: Optional[Mapping[str, str]] = None) -> None:
        """Add or replace a secret."""
        self._secrets[(namespace, name)] = _StoredSecret(
            data={str(k): _decode(v) for k, v in data.items()},
            labels=dict(labels or {}),
        )

    def resolve(self, ref: SecretRef) -> Optional[str]:
        secret = self._secrets.get((ref.namespace, ref.name))
        if secret is None:
            logger.debug(f"{ref} not found: no such secret")
            return None
        return secret.data.get(ref.key)

    def list_secrets(self, namespace: str, labels: Mapping[str, str]) -> Dict[str, Dict[str, str]]:
        found = {}
        for (secret_namespace, name), secret in sorted(self._secrets.items()):
            if secret_namespace != namespace:
                continue
            if all(secret.labels.get(k) == v for k, v in labels.items()):
                found[name] = dict(secret.data)
        return found


class MountedSecretResolver:
    """Resolves references against secrets mounted as files.

    Each field lives at ``<root>/<namespace>/<name>/<key>``. Trailing
    newlines are stripped from the file content.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self._root = Path(root)

    def resolve(self, ref: SecretRef) -> Optional[str]:
        path = self._root / ref.namespace / ref.name / ref.key
        if not path.is_file():
            logger.debug(f"{ref} not found at {path}")
            return None
        return path.read_text(encoding="utf-8").rstrip("\n")


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
