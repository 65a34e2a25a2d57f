"""Governance for the Redshift Access MCP Server.

Tool-level access control (per-tool allow/deny with pre-built profiles),
so that a deployment can, for example, manage grants without being able
to create or drop roles.
"""
