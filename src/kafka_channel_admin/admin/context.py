import concurrent.futures
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Optional, TypeVar

from ..constants import system_namespace
from ..config.credentials import SecretLister
from ..errors import OperationCancelledError

T = TypeVar("T")


@dataclass(frozen=True)
class AdminContext:
    """Ambient context for admin client construction and operations.

    Carries the namespace the system runs in, an optional deadline, a
    cancellation signal shared by every context derived from this one, and the
    secret lister backends use to discover their credential resources.
    """
    system_namespace: str = field(default_factory=system_namespace)
    deadline: Optional[float] = None
    secrets: Optional[SecretLister] = None
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def with_timeout(self, seconds: float) -> "AdminContext":
        """Derive a context whose deadline is at most ``seconds`` from now."""
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return replace(self, deadline=deadline)

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self, default: Optional[float] = None) -> Optional[float]:
        """Seconds left until the deadline, or ``default`` if there is none."""
        if self.deadline is None:
            return default
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context is cancelled or past its deadline.

        Raises:
            OperationCancelledError: If the operation must be abandoned.
        """
        if self.cancelled:
            raise OperationCancelledError("context cancelled")
        if self.expired:
            raise OperationCancelledError("context deadline exceeded")

    def wait(self, future: "concurrent.futures.Future[T]", *,
             timeout: Optional[float] = None, check_interval: float = 0.1) -> T:
        """Wait for a future, giving up promptly on cancellation or deadline.

        Args:
            future: The future to wait for.
            timeout: Upper bound in seconds in addition to the context deadline.
            check_interval: How often the cancellation signal is polled.

        Returns:
            The result of the future. Its exception, if any, is raised.

        Raises:
            OperationCancelledError: If the context is cancelled, its deadline
                passes, or ``timeout`` elapses before the future completes.
        """
        limit = self if timeout is None else self.with_timeout(timeout)
        while True:
            limit.check()
            wait_for = check_interval
            remaining = limit.remaining()
            if remaining is not None:
                wait_for = min(wait_for, remaining)
            done, _ = concurrent.futures.wait([future], timeout=wait_for)
            if done:
                return future.result()
