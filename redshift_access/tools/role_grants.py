"""Role grant tools: grant a role to a user, group or role, verify, revoke."""
from pydantic import BaseModel, Field, field_validator, ConfigDict
from mcp.server.fastmcp import FastMCP

from redshift_access.client import RedshiftClient
from redshift_access.resources.role_grant import (
    GrantToType,
    RoleGrant,
    create_role_grant,
    delete_role_grant,
    read_role_grant,
)
from redshift_access.tools.roles import IDENTIFIER_PATTERN, MAX_IDENTIFIER_LENGTH
from redshift_access.utils.errors import handle_error
from redshift_access.utils.formatting import ResponseFormat, format_role_grant


class RoleGrantInput(BaseModel):
    role_name: str = Field(
        ...,
        description="The name of the role to grant.",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    grant_to_type: GrantToType = Field(
        ...,
        description="The type of principal to grant the role to: 'user', 'group', or 'role'.",
    )
    grant_to_name: str = Field(
        ...,
        description="The name of the user, group, or role to grant this role to.",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)

    @field_validator("grant_to_type", mode="before")
    @classmethod
    def lowercase_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class RoleGrantIdInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    grant_id: str = Field(
        ...,
        description="Role grant identifier: role:<role_name>:<grant_to_type>:<grant_to_name>",
        min_length=1,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_role_grant_tools(mcp: FastMCP, client: RedshiftClient):

    @mcp.tool(
        name="redshift_create_role_grant",
        annotations={
            "title": "Grant Role",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def redshift_create_role_grant(params: RoleGrantInput) -> str:
        """Grant a role to a user, group, or another role.

        When granted to a role, the recipient inherits all privileges of the
        granted role. Returns the grant identifier needed to revoke it later.
        """
        try:
            db = await client.connect()
            grant = await create_role_grant(
                db, params.role_name, params.grant_to_type, params.grant_to_name
            )
            observed = await read_role_grant(
                db, grant.role_name, grant.grant_to_type, grant.grant_to_name
            )
            return format_role_grant(observed, grant_id=grant.id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_read_role_grant",
        annotations={
            "title": "Verify Role Grant",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_read_role_grant(params: RoleGrantInput) -> str:
        """Check whether a role grant still exists.

        User grants are checked in SVV_USER_GRANTS and role grants in
        SVV_ROLE_GRANTS. Group grants cannot be observed in any system view
        and are always reported as present.
        """
        try:
            db = await client.connect()
            grant = RoleGrant(params.role_name, params.grant_to_type, params.grant_to_name)
            observed = await read_role_grant(
                db, grant.role_name, grant.grant_to_type, grant.grant_to_name
            )
            return format_role_grant(observed, grant_id=grant.id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_import_role_grant",
        annotations={
            "title": "Import Role Grant",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_import_role_grant(params: RoleGrantIdInput) -> str:
        """Adopt an existing grant by identifier and verify it in Redshift."""
        try:
            grant = RoleGrant.from_id(params.grant_id)
            db = await client.connect()
            observed = await read_role_grant(
                db, grant.role_name, grant.grant_to_type, grant.grant_to_name
            )
            return format_role_grant(observed, grant_id=grant.id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_delete_role_grant",
        annotations={
            "title": "Revoke Role Grant",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_delete_role_grant(params: RoleGrantIdInput) -> str:
        """Revoke a role grant by identifier.

        If the role or the grantee no longer exists the grant is already gone
        and this succeeds without changes.
        """
        try:
            db = await client.connect()
            revoked = await delete_role_grant(db, params.grant_id)
            if revoked:
                return f"Role grant `{params.grant_id}` revoked."
            return f"Role grant `{params.grant_id}` was already removed."
        except Exception as e:
            return handle_error(e)
