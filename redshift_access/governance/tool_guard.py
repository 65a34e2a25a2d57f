"""Tool-level access control with allow/deny lists.

Enforces per-tool permissions before tool function execution.
Configurable via env vars or YAML governance config.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


# Tool categories for bulk allow/deny
TOOL_CATEGORIES: dict[str, list[str]] = {
    "role_read": [
        "redshift_read_role",
    ],
    "role_write": [
        "redshift_create_role",
        "redshift_update_role",
        "redshift_delete_role",
    ],
    "grant_read": [
        "redshift_read_role_grant",
        "redshift_import_role_grant",
    ],
    "grant_write": [
        "redshift_create_role_grant",
        "redshift_delete_role_grant",
    ],
    "session": [
        "redshift_session_info",
    ],
}

# Pre-built tool profiles
TOOL_PROFILES: dict[str, list[str]] = {
    "read_only": [
        "role_read",
        "grant_read",
        "session",
    ],
    # Manages who holds which role, but never creates or drops roles
    "operator": [
        "role_read",
        "grant_read",
        "grant_write",
        "session",
    ],
    "admin": list(TOOL_CATEGORIES.keys()),
}


@dataclass
class ToolAccessPolicy:
    """Resolved tool access policy."""

    allowed_tools: set[str] = field(default_factory=set)
    denied_tools: set[str] = field(default_factory=set)

    def is_tool_allowed(self, tool_name: str) -> bool:
        """Check if a specific tool is allowed.

        Logic:
        1. If deny list has entries and tool is in deny list -> DENIED
        2. If allow list has entries and tool is NOT in allow list -> DENIED
        3. If neither list has entries -> ALLOWED
        """
        if self.denied_tools and tool_name in self.denied_tools:
            return False
        if self.allowed_tools and tool_name not in self.allowed_tools:
            return False
        return True


def resolve_tool_policy(
    profile: Optional[str] = None,
    allowed_categories: Optional[list[str]] = None,
    denied_categories: Optional[list[str]] = None,
    allowed_tools: Optional[list[str]] = None,
    denied_tools: Optional[list[str]] = None,
) -> ToolAccessPolicy:
    """Resolve a tool access policy from profile + overrides.

    Priority order (later overrides earlier):
    1. Profile expands to category list
    2. allowed_categories / denied_categories override profile
    3. allowed_tools / denied_tools override everything (individual tool names)
    """
    policy = ToolAccessPolicy()

    if profile:
        if profile in TOOL_PROFILES:
            for cat in TOOL_PROFILES[profile]:
                policy.allowed_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool profile: {profile}")

    for cat in allowed_categories or []:
        if cat in TOOL_CATEGORIES:
            policy.allowed_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool category: {cat}")

    for cat in denied_categories or []:
        if cat in TOOL_CATEGORIES:
            policy.denied_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool category: {cat}")

    if allowed_tools:
        policy.allowed_tools.update(allowed_tools)

    if denied_tools:
        policy.denied_tools.update(denied_tools)

    return policy
