"""Redshift Access MCP Server: main entry point.

Manages Redshift roles and role grants (to users, groups and other roles)
as lifecycle tools, with tool-level governance.
"""
import os
import logging
from contextlib import asynccontextmanager
from mcp.server.fastmcp import FastMCP

from redshift_access.client import RedshiftClient
from redshift_access.config import config
from redshift_access.db import ConnectionRegistry
from redshift_access.governance.policy import GovernancePolicy, build_governance_policy
from redshift_access.prompts.templates import register_prompts
from redshift_access.tools.role_grants import register_role_grant_tools
from redshift_access.tools.roles import register_role_tools
from redshift_access.tools.session import register_session_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

registry = ConnectionRegistry()
client = RedshiftClient.from_config(config, registry)


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    """Connections open lazily on first use; tear them all down on exit."""
    if config.host:
        logger.info(f"Redshift Access MCP Server started (host={config.host}, database={config.database})")
    else:
        logger.info(
            "Redshift Access MCP Server started (no REDSHIFT_HOST set, "
            "tools will fail until configured)"
        )

    yield {"client": client}

    await registry.close_all()
    logger.info("Redshift Access MCP Server stopped")


_port = int(os.environ.get("APP_PORT", "8000"))

mcp = FastMCP(
    "redshift_access_mcp",
    lifespan=app_lifespan,
    stateless_http=True,
    host="0.0.0.0",
    port=_port,
)

# Build governance policy (env vars + optional YAML)
governance = build_governance_policy()

register_role_tools(mcp, client)
register_role_grant_tools(mcp, client)
register_session_tools(mcp, client)
register_prompts(mcp)


def _apply_tool_governance(mcp_instance: FastMCP, policy: GovernancePolicy):
    """Apply tool-level governance by wrapping ToolManager.call_tool.

    Intercepts every tool invocation to check tool access permissions
    before the handler executes. Only active when tool governance is configured.
    """
    if not policy.active:
        logger.info("Tool-level governance: inactive (no tool restrictions configured)")
        return

    original_call_tool = mcp_instance._tool_manager.call_tool

    async def governed_call_tool(name, arguments, context=None, convert_result=False):
        allowed, error_msg = policy.check_tool_access(name)
        if not allowed:
            return [{"type": "text", "text": f"Error: {error_msg}"}]
        return await original_call_tool(name, arguments, context, convert_result)

    mcp_instance._tool_manager.call_tool = governed_call_tool
    logger.info(
        f"Tool-level governance: active "
        f"(allow={len(policy.tool_policy.allowed_tools)}, "
        f"deny={len(policy.tool_policy.denied_tools)})"
    )


_apply_tool_governance(mcp, governance)


def main():
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
