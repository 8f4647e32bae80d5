"""Overlay sources.

An overlay is the operator supplied configuration resource: a name, a
namespace and a mapping of payload keys to structured text. Fetching and
watching the resource in a live cluster is left to the caller; anything that
satisfies ``OverlaySource`` can feed the merge.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Protocol, Union

import yaml

from ..constants import SETTINGS_CONFIG_NAME, system_namespace
from ..errors import MalformedOverlayError
from .config_loader import ConfigLoader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawOverlay:
    """A fetched configuration resource.

    Attributes:
        name: Name of the configuration resource.
        namespace: Namespace the resource lives in.
        data: Payload text keyed by settings domain, or None if the resource has no data.
    """
    name: str = SETTINGS_CONFIG_NAME
    namespace: str = field(default_factory=system_namespace)
    data: Optional[Mapping[str, str]] = None


class OverlaySource(Protocol):
    """Anything able to produce the current overlay, or None when it does not exist."""

    def fetch(self) -> Optional[RawOverlay]:
        ...


class StaticOverlaySource:
    """Overlay source returning a fixed, in-memory overlay."""

    def __init__(self, overlay: Optional[RawOverlay]) -> None:
        self._overlay = overlay

    def fetch(self) -> Optional[RawOverlay]:
        return self._overlay


class ManifestOverlaySource:
    """Overlay source reading a ConfigMap style manifest from disk.

    The manifest is a YAML or JSON document of the form::

        metadata:
          name: config-kafka
          namespace: knative-eventing
        data:
          sarama: |
            ...
          eventing-kafka: |
            ...

    A missing file means the resource does not exist. Payload values that are
    not strings (an inline mapping rather than a text block) are rendered back
    to YAML text so they go through the same parsing as everything else.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    def fetch(self) -> Optional[RawOverlay]:
        if not self._path.exists():
            logger.debug(f"Overlay manifest {self._path} does not exist")
            return None

        manifest = ConfigLoader.load_from_file(self._path)
        metadata = manifest.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedOverlayError(str(self._path), "metadata must be a mapping")

        data = manifest.get("data")
        if data is not None and not isinstance(data, dict):
            raise MalformedOverlayError(str(self._path), "data must be a mapping")

        return RawOverlay(
            name=metadata.get("name") or SETTINGS_CONFIG_NAME,
            namespace=metadata.get("namespace") or system_namespace(),
            data=_stringify_payloads(data) if data is not None else None,
        )


def _stringify_payloads(data: Mapping[str, object]) -> dict[str, str]:
    payloads = {}
    for key, value in data.items():
        if value is None:
            payloads[str(key)] = ""
        elif isinstance(value, str):
            payloads[str(key)] = value
        else:
            payloads[str(key)] = yaml.safe_dump(value, default_flow_style=False)
    return payloads
