"""Role lifecycle tools: create, read, rename and drop Redshift roles."""
from pydantic import BaseModel, Field
from mcp.server.fastmcp import FastMCP

from redshift_access.client import RedshiftClient
from redshift_access.resources.role import (
    create_role,
    delete_role,
    read_role,
    update_role,
)
from redshift_access.utils.errors import handle_error
from redshift_access.utils.formatting import ResponseFormat, format_role
from redshift_access.utils.retry import retry_on_pq_errors

# Redshift identifiers are at most 127 bytes
MAX_IDENTIFIER_LENGTH = 127
# no leading or trailing whitespace; quoted identifiers keep it verbatim
IDENTIFIER_PATTERN = r"^\S(?:.*\S)?$"


class CreateRoleInput(BaseModel):
    name: str = Field(
        ...,
        description="Role name. Case-insensitive; stored and identified in lowercase.",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class RoleIdInput(BaseModel):
    role_id: str = Field(
        ...,
        description="Role identifier as returned by redshift_create_role (the lowercase name)",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class UpdateRoleInput(BaseModel):
    role_id: str = Field(
        ...,
        description="Current role identifier. Matched case-insensitively.",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    name: str = Field(
        ...,
        description="Desired role name. A different name renames the role.",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH,
        pattern=IDENTIFIER_PATTERN,
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_role_tools(mcp: FastMCP, client: RedshiftClient):

    @retry_on_pq_errors
    async def _delete_role(role_id: str) -> bool:
        db = await client.connect()
        return await delete_role(db, role_id)

    @mcp.tool(
        name="redshift_create_role",
        annotations={
            "title": "Create Role",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def redshift_create_role(params: CreateRoleInput) -> str:
        """Create a Redshift role and return its identifier.

        The role is verified in SVV_ROLES before the transaction commits.
        Creating a role that already exists fails.
        """
        try:
            db = await client.connect()
            role = await create_role(db, params.name)
            observed = await read_role(db, role.id)
            return format_role(observed, role_id=role.id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_read_role",
        annotations={
            "title": "Read Role",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_read_role(params: RoleIdInput) -> str:
        """Look up a role by identifier.

        A missing role is reported as absent rather than as an error, so the
        caller can drop it from its tracked state.
        """
        try:
            db = await client.connect()
            role = await read_role(db, params.role_id)
            return format_role(role, role_id=params.role_id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_update_role",
        annotations={
            "title": "Rename Role",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_update_role(params: UpdateRoleInput) -> str:
        """Rename a role. Returns the role under its new identifier.

        Names that differ only in case are the same role and change nothing.
        """
        try:
            db = await client.connect()
            role = await update_role(db, params.role_id, params.name)
            observed = await read_role(db, role.id)
            return format_role(observed, role_id=role.id, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="redshift_delete_role",
        annotations={
            "title": "Drop Role",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_delete_role(params: RoleIdInput) -> str:
        """Drop a role. Succeeds without changes when the role is already gone.

        Retries with backoff when Redshift reports a concurrent transaction conflict.
        """
        try:
            dropped = await _delete_role(params.role_id)
            if dropped:
                return f"Role `{params.role_id}` dropped."
            return f"Role `{params.role_id}` does not exist; nothing to drop."
        except Exception as e:
            return handle_error(e)
