"""Type coercion for raw overlay values.

Every function here takes a raw value as produced by the YAML parser (or an
environment variable) and returns its semantic type, raising ``ValueError``
with a short reason when the value cannot be coerced. Callers attach the
field path.
"""

import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, TypeVar

from ..errors import FieldCoercionError

T = TypeVar("T")

_BINARY_SUFFIXES = {
    "Ki": Decimal(2) ** 10,
    "Mi": Decimal(2) ** 20,
    "Gi": Decimal(2) ** 30,
    "Ti": Decimal(2) ** 40,
    "Pi": Decimal(2) ** 50,
    "Ei": Decimal(2) ** 60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

_QUANTITY_PATTERN = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))"
    r"(?:(?P<exponent>[eE][+-]?\d+)|(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE])?)$"
)

_DURATION_UNITS = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "µs": Decimal(1_000),
    "ms": Decimal(1_000_000),
    "s": Decimal(1_000_000_000),
    "m": Decimal(60_000_000_000),
    "h": Decimal(3_600_000_000_000),
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_TRUE_VALUES = ("true", "yes", "on", "1")
_FALSE_VALUES = ("false", "no", "off", "0")


@dataclass(frozen=True)
class Quantity:
    """A dimensioned resource quantity such as ``100m`` CPU or ``50Mi`` memory.

    Quantities compare by value (``100m == 0.1``) but keep the text they were
    written with so that they print back unchanged.
    """
    value: Decimal
    text: str = field(compare=False)

    @classmethod
    def parse(cls, raw: Any) -> "Quantity":
        """Parse a quantity from a string or a plain number.

        Raises:
            ValueError: If the text is not a valid non-negative quantity.
        """
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise ValueError(f"expected a resource quantity, got {type(raw).__name__}")

        text = str(raw).strip()
        match = _QUANTITY_PATTERN.match(text)
        if not match:
            raise ValueError(f"malformed resource quantity '{text}'")

        try:
            number = Decimal(match.group("number"))
            if match.group("exponent"):
                number = number.scaleb(int(match.group("exponent")[1:]))
            else:
                suffix = match.group("suffix") or ""
                number *= _BINARY_SUFFIXES.get(suffix) or _DECIMAL_SUFFIXES[suffix]
        except InvalidOperation as e:
            raise ValueError(f"malformed resource quantity '{text}'") from e

        if number < 0:
            raise ValueError(f"resource quantity '{text}' must not be negative")

        return cls(value=number, text=text)

    def __str__(self) -> str:
        return self.text


def to_quantity(raw: Any) -> Optional[Quantity]:
    """Coerce an optional quantity. ``None`` and empty strings mean unset."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return Quantity.parse(raw)


def to_int(raw: Any, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Coerce an integer, optionally bounded (inclusive)."""
    if isinstance(raw, bool):
        raise ValueError(f"expected an integer, got boolean {raw}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float) and raw.is_integer():
        value = int(raw)
    elif isinstance(raw, str):
        try:
            value = int(raw.strip())
        except ValueError:
            raise ValueError(f"expected an integer, got '{raw}'") from None
    else:
        raise ValueError(f"expected an integer, got {raw!r}")

    if minimum is not None and value < minimum:
        raise ValueError(f"must be at least {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"must be at most {maximum}, got {value}")
    return value


def to_bool(raw: Any) -> bool:
    """Coerce a boolean from a bool or one of the usual textual spellings."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValueError(f"expected a boolean, got {raw!r}")


def to_str(raw: Any) -> str:
    """Coerce a scalar to text. ``None`` becomes the empty string."""
    if raw is None:
        return ""
    if isinstance(raw, (dict, list)):
        raise ValueError(f"expected a string, got {type(raw).__name__}")
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return str(raw)


def to_duration(raw: Any) -> timedelta:
    """Coerce a duration.

    Integers are nanoseconds. Strings use the ``<number><unit>`` grammar with
    units ``ns``, ``us``, ``ms``, ``s``, ``m`` and ``h`` and may chain several
    parts (``1h30m``). A bare ``0`` is accepted. Negative durations are rejected.
    """
    if isinstance(raw, bool):
        raise ValueError(f"expected a duration, got boolean {raw}")
    if isinstance(raw, int):
        nanos = Decimal(raw)
    elif isinstance(raw, str):
        nanos = _parse_duration_text(raw.strip())
    else:
        raise ValueError(f"expected a duration, got {raw!r}")

    if nanos < 0:
        raise ValueError(f"duration must not be negative, got {raw!r}")
    try:
        return timedelta(microseconds=float(nanos / 1000))
    except OverflowError as e:
        raise ValueError(f"duration out of range, got {raw!r}") from e


def _parse_duration_text(text: str) -> Decimal:
    if not text:
        raise ValueError("empty duration")
    if text.lstrip("-+").isdigit():
        return Decimal(text)

    negative = text.startswith("-")
    body = text.lstrip("-+")
    position = 0
    total = Decimal(0)
    for match in _DURATION_PART.finditer(body):
        if match.start() != position:
            break
        total += Decimal(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(body):
        raise ValueError(f"unparsable duration '{text}'")
    return -total if negative else total


def format_duration(value: timedelta) -> str:
    """Render a duration in the textual grammar accepted by ``to_duration``."""
    micros = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"
    if micros % 1_000_000:
        if micros % 1_000:
            return f"{micros}us"
        return f"{micros // 1_000}ms"

    seconds = micros // 1_000_000
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds:
        parts.append(f"{seconds}s")
    return "".join(parts)


def to_server_list(raw: Any) -> list[str]:
    """Coerce bootstrap servers from a list or a comma separated string."""
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = [to_str(item) for item in raw]
    else:
        raise ValueError(f"expected a list of servers, got {raw!r}")

    servers = [item.strip() for item in items if item and item.strip()]
    for server in servers:
        host, _, port = server.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"invalid bootstrap server '{server}', expected host:port")
    return servers


class FieldReader:
    """Reads and coerces fields from one section of a merged raw mapping.

    Failures are reported as ``FieldCoercionError`` carrying the dotted path of
    the field, prefixed with the payload key the section came from.
    """

    def __init__(self, data: Mapping[str, Any], path: str) -> None:
        self._data = data
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def field_path(self, name: str) -> str:
        return f"{self._path}.{name}" if self._path else name

    def section(self, name: str) -> "FieldReader":
        """Return a reader for a nested section. An absent section reads as empty."""
        raw = self._data.get(name)
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise FieldCoercionError(self.field_path(name), raw, "expected a mapping")
        return FieldReader(raw, self.field_path(name))

    def has(self, name: str) -> bool:
        return name in self._data

    def raw(self, name: str) -> Any:
        return self._data.get(name)

    def get(self, name: str, coerce: Callable[..., T], default: Optional[T] = None, **kwargs: Any) -> T:
        """Coerce a single field, returning ``default`` when it is absent."""
        if name not in self._data:
            return default  # type: ignore[return-value]
        raw = self._data[name]
        try:
            return coerce(raw, **kwargs)
        except ValueError as e:
            raise FieldCoercionError(self.field_path(name), raw, str(e)) from e
