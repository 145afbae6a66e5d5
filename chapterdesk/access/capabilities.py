"""Access control — role tag → capability set.

A principal's role is mapped through one pure function. There is no other
escalation path: every mutating entry point calls `require()` and anything
it does not recognise is denied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

from chapterdesk.errors import PermissionDenied
from chapterdesk.models.enums import Role
from chapterdesk.schemas.content import Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    """What a role may do. All False is the fail-closed default."""

    can_write_direct: bool = False
    can_review: bool = False
    can_delete: bool = False
    can_view_audit: bool = False
    can_export_audit: bool = False

    def granted(self) -> list[str]:
        """Names of the capabilities that are switched on."""
        return [f.name for f in fields(self) if getattr(self, f.name)]


NO_CAPABILITIES = Capabilities()

ROLE_CAPABILITIES: dict[Role, Capabilities] = {
    Role.RESTRICTED: NO_CAPABILITIES,
    Role.UNRESTRICTED: Capabilities(
        can_write_direct=True,
        can_review=True,
        can_delete=True,
        can_view_audit=True,
    ),
    Role.SUPERUSER: Capabilities(
        can_write_direct=True,
        can_review=True,
        can_delete=True,
        can_view_audit=True,
        can_export_audit=True,
    ),
}

CAPABILITY_NAMES: frozenset[str] = frozenset(f.name for f in fields(Capabilities))


def capabilities_for(role: Role | str | None) -> Capabilities:
    """Return the capability set of a role; unknown roles get nothing."""
    try:
        key = Role(role)
    except ValueError:
        logger.warning("Unrecognised role %r, denying all capabilities", role)
        return NO_CAPABILITIES
    return ROLE_CAPABILITIES.get(key, NO_CAPABILITIES)


def has_capability(principal: Principal, capability: str) -> bool:
    """Check one capability by name."""
    if capability not in CAPABILITY_NAMES:
        msg = f"Unknown capability: {capability}"
        raise ValueError(msg)
    return bool(getattr(capabilities_for(principal.role), capability))


def require(principal: Principal, capability: str) -> None:
    """Raise PermissionDenied unless the principal holds `capability`."""
    if not has_capability(principal, capability):
        logger.info(
            "Permission denied: actor=%s role=%s capability=%s",
            principal.id,
            principal.role,
            capability,
        )
        raise PermissionDenied(principal.id, capability)


def require_known_role(principal: Principal) -> None:
    """Staging needs no capability, but it still needs a role we recognise."""
    try:
        Role(principal.role)
    except ValueError:
        logger.warning("Rejecting principal %s with unrecognised role %r", principal.id, principal.role)
        raise PermissionDenied(principal.id, "known_role") from None


def is_restricted(principal: Principal) -> bool:
    """A restricted principal is any role that cannot write live content."""
    return not capabilities_for(principal.role).can_write_direct
