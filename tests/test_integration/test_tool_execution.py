"""Integration tests for tool execution against an in-memory Redshift."""
import json

import pytest
import psycopg
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock
from mcp.server.fastmcp import FastMCP

from redshift_access.tools.role_grants import (
    RoleGrantIdInput,
    RoleGrantInput,
    register_role_grant_tools,
)
from redshift_access.tools.roles import (
    CreateRoleInput,
    RoleIdInput,
    UpdateRoleInput,
    register_role_tools,
)
from redshift_access.tools.session import SessionInfoInput, register_session_tools
from redshift_access.resources.role_grant import GrantToType
from redshift_access.utils.errors import ConnectionOpenError
from redshift_access.utils.formatting import ResponseFormat


@pytest.fixture
def fake_client(fake_db):
    client = MagicMock()
    client.connect = AsyncMock(return_value=fake_db)
    client.current_user = AsyncMock(return_value="admin")
    client.is_serverless = AsyncMock(return_value=False)
    return client


@pytest.fixture
def tools(fake_client):
    """Registered tool functions by name."""
    mcp = FastMCP("test")
    register_role_tools(mcp, fake_client)
    register_role_grant_tools(mcp, fake_client)
    register_session_tools(mcp, fake_client)
    return {t.name: t.fn for t in mcp._tool_manager.list_tools()}


class TestToolInputs:
    def test_grant_type_is_case_insensitive(self):
        params = RoleGrantInput(role_name="analyst", grant_to_type=" ROLE ", grant_to_name="manager")
        assert params.grant_to_type is GrantToType.ROLE

    def test_unknown_grant_type_rejected(self):
        with pytest.raises(ValidationError):
            RoleGrantInput(role_name="analyst", grant_to_type="schema", grant_to_name="x")

    def test_empty_role_name_rejected(self):
        with pytest.raises(ValidationError):
            CreateRoleInput(name="   ")

    def test_overlong_role_name_rejected(self):
        with pytest.raises(ValidationError):
            CreateRoleInput(name="r" * 128)

    @pytest.mark.parametrize("name", [" analyst", "analyst "])
    def test_surrounding_whitespace_rejected(self, name):
        with pytest.raises(ValidationError):
            CreateRoleInput(name=name)
        with pytest.raises(ValidationError):
            RoleIdInput(role_id=name)
        with pytest.raises(ValidationError):
            RoleGrantInput(role_name=name, grant_to_type="user", grant_to_name="alice")

    def test_inner_whitespace_accepted(self):
        assert CreateRoleInput(name="data analyst").name == "data analyst"

    def test_default_format_is_markdown(self):
        assert RoleIdInput(role_id="analyst").response_format == ResponseFormat.MARKDOWN


class TestRoleTools:
    def test_all_tools_registered(self, tools):
        assert set(tools) == {
            "redshift_create_role",
            "redshift_read_role",
            "redshift_update_role",
            "redshift_delete_role",
            "redshift_create_role_grant",
            "redshift_read_role_grant",
            "redshift_delete_role_grant",
            "redshift_import_role_grant",
            "redshift_session_info",
        }

    async def test_create_role_reports_lowercase_id(self, tools, fake_db):
        fake_db.rows["SELECT role_name FROM SVV_ROLES"] = {"role_name": "analyst"}

        result = await tools["redshift_create_role"](
            CreateRoleInput(name="Analyst", response_format="json")
        )

        data = json.loads(result)
        assert data["id"] == "analyst"
        assert data["exists"] is True

    async def test_read_missing_role_reports_empty_id(self, tools):
        result = await tools["redshift_read_role"](
            RoleIdInput(role_id="analyst", response_format="json")
        )
        assert json.loads(result)["id"] == ""

    async def test_update_role_renames(self, tools, fake_db):
        fake_db.rows["SELECT role_name FROM SVV_ROLES"] = {"role_name": "data_analyst"}

        result = await tools["redshift_update_role"](
            UpdateRoleInput(role_id="analyst", name="Data_Analyst")
        )

        assert 'ALTER ROLE "analyst" RENAME TO "data_analyst"' in fake_db.sql
        assert "data_analyst" in result

    async def test_delete_absent_role_succeeds(self, tools, fake_db):
        fake_db.rows["SELECT EXISTS"] = {"role_exists": False}

        result = await tools["redshift_delete_role"](RoleIdInput(role_id="analyst"))

        assert "nothing to drop" in result

    async def test_delete_with_mixed_case_id_drops_role(self, tools, fake_db):
        fake_db.rows["SELECT EXISTS"] = {"role_exists": True}

        result = await tools["redshift_delete_role"](RoleIdInput(role_id="Analyst"))

        assert "dropped" in result
        assert fake_db.statements[0][1] == ("analyst",)
        assert 'DROP ROLE "analyst"' in fake_db.sql

    async def test_connection_failure_is_reported(self, tools, fake_client):
        fake_client.connect.side_effect = ConnectionOpenError("error creating Redshift driver instance")

        result = await tools["redshift_read_role"](RoleIdInput(role_id="analyst"))

        assert result.startswith("Error: Cannot connect to Redshift")


class TestRoleGrantTools:
    async def test_create_grant_returns_identifier(self, tools, fake_db):
        fake_db.rows["SVV_ROLE_GRANTS"] = {"?column?": 1}

        result = await tools["redshift_create_role_grant"](
            RoleGrantInput(
                role_name="analyst",
                grant_to_type="role",
                grant_to_name="Manager",
                response_format="json",
            )
        )

        data = json.loads(result)
        assert data["id"] == "role:analyst:role:manager"
        assert 'GRANT ROLE "analyst" TO ROLE "manager"' in fake_db.sql

    async def test_read_missing_grant(self, tools):
        result = await tools["redshift_read_role_grant"](
            RoleGrantInput(role_name="analyst", grant_to_type="user", grant_to_name="alice")
        )
        assert "no longer exists" in result

    async def test_import_malformed_id_is_invalid_input(self, tools, fake_db):
        result = await tools["redshift_import_role_grant"](
            RoleGrantIdInput(grant_id="analyst:alice")
        )
        assert result.startswith("Error: Invalid input")
        assert fake_db.statements == []

    async def test_import_group_grant_trusts_identifier(self, tools):
        result = await tools["redshift_import_role_grant"](
            RoleGrantIdInput(grant_id="role:analyst:group:finance", response_format="json")
        )
        assert json.loads(result)["exists"] is True

    async def test_delete_after_out_of_band_drop(self, tools, fake_db):
        fake_db.failures["REVOKE ROLE"] = psycopg.errors.UndefinedObject(
            'role "analyst" does not exist'
        )

        result = await tools["redshift_delete_role_grant"](
            RoleGrantIdInput(grant_id="role:analyst:role:manager")
        )

        assert "already removed" in result


class TestSessionTool:
    async def test_session_info_json(self, tools):
        result = await tools["redshift_session_info"](SessionInfoInput(response_format="json"))
        assert json.loads(result) == {"current_user": "admin", "serverless": False}

    async def test_session_info_markdown(self, tools):
        result = await tools["redshift_session_info"](SessionInfoInput())
        assert "`admin`" in result
        assert "provisioned" in result
