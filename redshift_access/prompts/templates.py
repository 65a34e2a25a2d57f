"""Reusable prompt templates for common Redshift access workflows."""
from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP):

    @mcp.prompt("redshift_role_hierarchy")
    async def role_hierarchy() -> str:
        """Guide for building a role hierarchy with role grants."""
        return """You are organizing Redshift permissions into a role hierarchy. Follow these steps:

1. **Check the session**: Call redshift_session_info to see which user you act as
2. **Create roles**: Call redshift_create_role for each role (names are stored lowercase)
3. **Nest roles**: Call redshift_create_role_grant with grant_to_type="role" to make
   one role inherit another. role_name is the parent being granted, grant_to_name the child
4. **Assign people**: Grant roles to users (grant_to_type="user") or groups (grant_to_type="group")
5. **Keep the identifiers**: Every grant returns an id like role:analyst:role:manager.
   It is the only handle needed to revoke the grant later

Rules:
- Grants are immutable: to change one, revoke it with redshift_delete_role_grant and grant again
- Group grants cannot be verified from system views; redshift_read_role_grant reports them as present
- Revoking or dropping something that is already gone succeeds without changes"""

    @mcp.prompt("redshift_drift_check")
    async def drift_check() -> str:
        """Guide for reconciling recorded roles and grants with Redshift."""
        return """You are checking recorded access-control state against a live Redshift database.

For every recorded role id, call redshift_read_role. For every recorded grant id, call
redshift_import_role_grant. Anything reported as no longer existing was removed outside
of this workflow: drop it from the record, or recreate it if it is still wanted.

Never recreate a grant before confirming its role and grantee exist."""
