"""Admin client delegating topic management to a REST sidecar.

The sidecar runs next to the controller and owns whatever system actually
holds the topics. Creation is ``POST /topics`` with the topic name in the
``Slug`` header; deletion is ``DELETE /topics/<name>``.
"""

import logging
from typing import Optional

import httpx

from ..constants import DEFAULT_SIDECAR_URL, SIDECAR_TOPICS_PATH
from ..errors import TopicError, TopicErrorCode
from .admin_client import ClosableAdminClient, TopicSpec
from .context import AdminContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

_STATUS_CODES = {
    409: TopicErrorCode.ALREADY_EXISTS,
    404: TopicErrorCode.NOT_FOUND,
    400: TopicErrorCode.INVALID_CONFIGURATION,
    422: TopicErrorCode.INVALID_CONFIGURATION,
    401: TopicErrorCode.UNAUTHORIZED,
    403: TopicErrorCode.UNAUTHORIZED,
}


def topic_error_from_status(topic: str, response: httpx.Response) -> Optional[TopicError]:
    """Map a sidecar response onto a TopicError. 2xx responses map to None."""
    if response.is_success:
        return None
    code = _STATUS_CODES.get(response.status_code)
    if code is None:
        code = TopicErrorCode.UNAVAILABLE if response.status_code >= 500 else TopicErrorCode.UNKNOWN
    return TopicError(code, topic, f"sidecar returned {response.status_code}: {response.text.strip()}")


class SidecarAdmin(ClosableAdminClient):
    """Topic admin client talking to the custom sidecar over HTTP."""

    def __init__(self,
                 ctx: AdminContext,
                 *,
                 base_url: str = DEFAULT_SIDECAR_URL,
                 secret_name: str = "",
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 client: Optional[httpx.Client] = None,
                 ) -> None:
        """
        Args:
            ctx: Default context of topic operations.
            base_url: Base URL of the sidecar.
            secret_name: Credential resource reported by ``get_secret_name``.
            timeout: Request timeout in seconds.
            client: Pre-built HTTP client. It is closed together with this admin client.
        """
        super().__init__()
        self._ctx = ctx
        self._secret_name = secret_name
        self._timeout = timeout
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        logger.debug(f"Using topic sidecar at {self._client.base_url}")

    def create_topic(self, topic_name: str, spec: TopicSpec,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        body = {
            "numPartitions": spec.num_partitions,
            "replicationFactor": spec.replication_factor,
            "configEntries": spec.topic_config(),
        }
        error = self._send(ctx, "POST", SIDECAR_TOPICS_PATH, topic_name,
                           json=body, headers={"Slug": topic_name})
        if error is None:
            logger.info(f"Sidecar accepted creation of topic {topic_name}")
        return error

    def delete_topic(self, topic_name: str,
                     ctx: Optional[AdminContext] = None) -> Optional[TopicError]:
        error = self._send(ctx, "DELETE", f"{SIDECAR_TOPICS_PATH}/{topic_name}", topic_name)
        if error is None:
            logger.info(f"Sidecar accepted deletion of topic {topic_name}")
        return error

    def _send(self, ctx: Optional[AdminContext], method: str, path: str,
              topic_name: str, **kwargs) -> Optional[TopicError]:
        closed = self._closed_error(topic_name)
        if closed:
            return closed

        ctx = ctx or self._ctx
        if ctx.cancelled or ctx.expired:
            return TopicError(TopicErrorCode.CANCELLED, topic_name,
                              "context cancelled" if ctx.cancelled else "context deadline exceeded")

        try:
            response = self._client.request(method, path, timeout=ctx.remaining(self._timeout), **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Sidecar {method} {path} timed out: {e}")
            code = TopicErrorCode.CANCELLED if ctx.cancelled or ctx.expired else TopicErrorCode.UNAVAILABLE
            return TopicError(code, topic_name, f"request timed out: {e}")
        except httpx.TransportError as e:
            logger.error(f"Sidecar {method} {path} failed: {e}")
            return TopicError(TopicErrorCode.UNAVAILABLE, topic_name, str(e))

        error = topic_error_from_status(topic_name, response)
        if error is not None:
            logger.error(f"Sidecar {method} {path} failed: {error}")
        return error

    def get_secret_name(self, namespace: str) -> str:
        return self._secret_name

    def _close(self) -> None:
        self._client.close()


def new_custom_admin_client(ctx: AdminContext, namespace: str,
                            base_url: str = DEFAULT_SIDECAR_URL) -> SidecarAdmin:
    """Backend constructor for ``AdminType.CUSTOM``. The sidecar is namespace agnostic."""
    return SidecarAdmin(ctx, base_url=base_url)
