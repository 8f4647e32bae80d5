"""Shared validation behaviour of the transport and application configurations.

A configuration collects every violated invariant in one pass and reports
them against dotted field names (``sarama.Net.TLS.Cert``), so the operator
sees which overlay entry to fix.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
import threading

from ..errors import FieldCoercionError


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation failure, qualified by the field it concerns."""
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ConfigValidationError(FieldCoercionError):
    """Raised when a merged configuration violates an invariant.

    The first failing field is reported as ``field``; ``issues`` holds all of them.
    """

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        first = issues[0]
        reason = first.message
        if len(issues) > 1:
            reason += f" (and {len(issues) - 1} more: {'; '.join(str(i) for i in issues[1:])})"
        super().__init__(first.field, None, reason)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking a configuration's invariants."""
    is_valid: bool
    errors: list[ValidationIssue]
    warnings: list[str] = field(default_factory=list)


class BaseConfig(ABC):
    """Base class of the merged configuration objects.

    Subclasses implement ``_validate_impl()`` for their invariants and
    ``to_dict()`` for their canonical form. Two configurations are equal when
    their canonical forms are. Issue fields are prefixed with ``field_prefix``.
    """

    field_prefix: str = ""

    def __init__(self) -> None:
        self._validation: Optional[ValidationResult] = None
        self._lock = threading.RLock()

    @property
    def is_validated(self) -> bool:
        """True when every invariant holds. Runs validation on first access."""
        try:
            return self.validate().is_valid
        except ConfigValidationError:
            return False

    def validate(self) -> ValidationResult:
        """Check the invariants once and remember the outcome.

        Returns:
            The ValidationResult, possibly carrying warnings.

        Raises:
            ConfigValidationError: Naming every violated field.
        """
        with self._lock:
            if self._validation is None:
                self._validation = self._validate_impl()
            result = self._validation

        if not result.is_valid:
            raise ConfigValidationError(result.errors)
        return result

    def _issue(self, field_name: str, message: str) -> ValidationIssue:
        if self.field_prefix:
            field_name = f"{self.field_prefix}.{field_name}"
        return ValidationIssue(field=field_name, message=message)

    @abstractmethod
    def _validate_impl(self) -> ValidationResult:
        ...

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Canonical dictionary form, in overlay shape."""
        ...

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.to_dict()!r})"
