from enum import Enum
from typing import Any


class AdminType(str, Enum):
    """Backend variants an admin client can be created for.

    ``UNKNOWN`` is the terminal variant every unrecognized value maps to; no
    backend can ever be created for it.
    """
    KAFKA = "kafka"
    EVENTHUB = "azure"
    CUSTOM = "custom"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "AdminType":
        """Map a configured value onto a variant, case-insensitively."""
        if isinstance(value, AdminType):
            return value
        text = str(value or "").strip().lower()
        for admin_type in cls:
            if admin_type.value == text:
                return admin_type
        return cls.UNKNOWN
