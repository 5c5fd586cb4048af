"""Field classification states used while walking status payloads."""

from enum import Enum


class FieldStatus(Enum):
    """Outcome of looking up one key in a decoded payload section."""

    NUMERIC = "numeric"
    WRONG_TYPE = "wrong_type"
    ABSENT = "absent"

    def is_usable(self) -> bool:
        """
        Check whether the field carried a value that can be exported.

        Returns:
            bool: True only for NUMERIC fields
        """
        return self is FieldStatus.NUMERIC
