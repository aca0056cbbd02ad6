"""Acting-user roles and what each may change."""
import logging
from enum import Enum

logger = logging.getLogger("noticeboard.auth")


class Role(str, Enum):
    ADMIN = "admin"
    FACULTY = "faculty"
    STUDENT = "student"


PUBLISHER_ROLES = frozenset({Role.ADMIN, Role.FACULTY})


class UnknownRoleError(ValueError):
    """A role was given that is not admin, faculty or student."""
    pass


class PermissionDenied(Exception):
    """The acting role may not perform the requested change."""
    pass


def resolve_role(value: str | None) -> Role:
    """Map a role string onto Role.

    A missing role means student, as for a fresh session. Anything else
    must name a known role.
    """
    if value is None or not value.strip():
        return Role.STUDENT
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise UnknownRoleError(f"Unknown role: {value!r}") from None


def can_publish(role: Role) -> bool:
    """Admins and faculty create, edit and delete notifications."""
    return role in PUBLISHER_ROLES


def require_publisher(role: Role) -> None:
    if not can_publish(role):
        logger.warning(f"Rejected mutation attempt by role {role.value}")
        raise PermissionDenied(f"Role {role.value!r} cannot modify notifications")
