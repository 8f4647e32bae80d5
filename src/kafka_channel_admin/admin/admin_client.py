"""The admin client capability set.

Every backend variant exposes the same four operations. Topic operations
report failure by returning a ``TopicError`` (``None`` means the request was
accepted; creation or deletion may still be completing on the backend).
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Protocol, runtime_checkable

from ..errors import TopicError, TopicErrorCode

if TYPE_CHECKING:
    from .context import AdminContext

logger = logging.getLogger(__name__)

RETENTION_MS_CONFIG = "retention.ms"


@dataclass(frozen=True)
class TopicSpec:
    """Requested shape of a topic.

    Attributes:
        num_partitions: Number of partitions.
        replication_factor: Number of replicas per partition.
        retention_millis: Message retention in milliseconds.
        config: Additional topic level configuration entries.
    """
    num_partitions: int
    replication_factor: int
    retention_millis: int
    config: Dict[str, str] = field(default_factory=dict)

    def topic_config(self) -> Dict[str, str]:
        """Return the topic configuration entries, retention included."""
        entries = dict(self.config)
        entries[RETENTION_MS_CONFIG] = str(self.retention_millis)
        return entries


@runtime_checkable
class AdminClient(Protocol):
    """Capability set for topic lifecycle management against one backend."""

    def create_topic(self, name: str, spec: TopicSpec,
                     ctx: Optional["AdminContext"] = None) -> Optional[TopicError]:
        """Request creation of a topic, bounded by ``ctx`` when given."""
        ...

    def delete_topic(self, name: str, ctx: Optional["AdminContext"] = None) -> Optional[TopicError]:
        """Request deletion of a topic. A missing topic yields ``NOT_FOUND``."""
        ...

    def get_secret_name(self, namespace: str) -> str:
        """Return the name of the credential resource for the given namespace scope."""
        ...

    def close(self) -> None:
        """Release connections. Safe to call repeatedly and concurrently."""
        ...


class ClosableAdminClient:
    """Shared close handling for admin client implementations.

    Subclasses implement ``_close()`` to release their resources; it runs at
    most once no matter how many threads call ``close()``.
    """

    def __init__(self) -> None:
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._close()
        logger.debug(f"{self.__class__.__name__} closed")

    def _close(self) -> None:
        pass

    def _closed_error(self, topic: str) -> Optional[TopicError]:
        """Return an error for operations attempted after close, else None."""
        if self._closed:
            return TopicError(TopicErrorCode.UNAVAILABLE, topic, "admin client is closed")
        return None
