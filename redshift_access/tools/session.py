"""Session information: who the server connects as and what it connects to."""
import json
from pydantic import BaseModel, Field, ConfigDict
from mcp.server.fastmcp import FastMCP

from redshift_access.client import RedshiftClient
from redshift_access.utils.errors import handle_error
from redshift_access.utils.formatting import ResponseFormat


class SessionInfoInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_session_tools(mcp: FastMCP, client: RedshiftClient):

    @mcp.tool(
        name="redshift_session_info",
        annotations={
            "title": "Session Info",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def redshift_session_info(params: SessionInfoInput) -> str:
        """Show the database user this server acts as and whether the target
        behaves like Redshift Serverless.

        Both facts are looked up once per server process and cached.
        """
        try:
            username = await client.current_user()
            serverless = await client.is_serverless()
            if params.response_format == ResponseFormat.JSON:
                return json.dumps(
                    {"current_user": username, "serverless": serverless}, indent=2
                )
            kind = "serverless (or multi-AZ provisioned)" if serverless else "provisioned"
            return "\n".join(
                [
                    "## Redshift Session\n",
                    f"- **User**: `{username}`",
                    f"- **Deployment**: {kind}",
                ]
            )
        except Exception as e:
            return handle_error(e)
