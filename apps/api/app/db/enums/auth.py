"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles (closed set).

    - MANAGER: every site in the org, computed from the site table
    - SERVICE_TECH: assigned sites only, may change site configuration
    - OPERATOR: assigned sites only, read and acknowledge
    """

    MANAGER = "manager"
    SERVICE_TECH = "service_tech"
    OPERATOR = "operator"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
