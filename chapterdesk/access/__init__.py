"""Access control — role → capability mapping."""

from chapterdesk.access.capabilities import Capabilities, capabilities_for, require

__all__ = ["Capabilities", "capabilities_for", "require"]
