"""Test the governance policy engine: env vars, YAML config, resolved policy."""
import os
import pytest
from unittest.mock import patch
from redshift_access.governance.policy import (
    GovernanceConfig,
    build_governance_policy,
    load_governance_config,
    _parse_env_list,
)


# ── Helper ────────────────────────────────────────────────────────────

def _clear_governance_env():
    """Remove all governance env vars for clean test state."""
    vars_to_clear = [
        "REDSHIFT_TOOL_PROFILE",
        "REDSHIFT_TOOL_ALLOWED_CATEGORIES",
        "REDSHIFT_TOOL_DENIED_CATEGORIES",
        "REDSHIFT_TOOL_ALLOWED",
        "REDSHIFT_TOOL_DENIED",
        "REDSHIFT_GOVERNANCE_CONFIG",
    ]
    env = {k: v for k, v in os.environ.items() if k not in vars_to_clear}
    return env


# ── _parse_env_list Tests ─────────────────────────────────────────────

class TestParseEnvList:

    def test_empty_string(self):
        with patch.dict(os.environ, {"TEST_VAR": ""}, clear=False):
            assert _parse_env_list("TEST_VAR") is None

    def test_unset_var(self):
        assert _parse_env_list("NONEXISTENT_VAR_XYZ") is None

    def test_multiple_values(self):
        with patch.dict(os.environ, {"TEST_VAR": "role_read,grant_read"}, clear=False):
            assert _parse_env_list("TEST_VAR") == ["role_read", "grant_read"]

    def test_whitespace_and_trailing_comma(self):
        with patch.dict(os.environ, {"TEST_VAR": " role_read , grant_read, "}, clear=False):
            assert _parse_env_list("TEST_VAR") == ["role_read", "grant_read"]


# ── Env Var Loading ───────────────────────────────────────────────────

class TestLoadGovernanceConfig:

    def test_nothing_configured(self):
        with patch.dict(os.environ, _clear_governance_env(), clear=True):
            config = load_governance_config()
        assert config == GovernanceConfig()

    def test_load_tool_profile(self):
        env = _clear_governance_env()
        env["REDSHIFT_TOOL_PROFILE"] = "operator"
        with patch.dict(os.environ, env, clear=True):
            assert load_governance_config().tool_profile == "operator"

    def test_load_tool_denied(self):
        env = _clear_governance_env()
        env["REDSHIFT_TOOL_DENIED"] = "redshift_delete_role,redshift_update_role"
        with patch.dict(os.environ, env, clear=True):
            config = load_governance_config()
        assert config.tool_denied_tools == ["redshift_delete_role", "redshift_update_role"]


# ── YAML Config Loading ───────────────────────────────────────────────

class TestYAMLConfig:

    def test_load_yaml_config(self, tmp_path):
        yaml_path = tmp_path / "governance.yaml"
        yaml_path.write_text(
            "tools:\n"
            "  profile: admin\n"
            "  denied_categories:\n"
            "    - role_write\n"
            "  denied_tools:\n"
            "    - redshift_delete_role_grant\n"
        )
        env = _clear_governance_env()
        env["REDSHIFT_GOVERNANCE_CONFIG"] = str(yaml_path)
        with patch.dict(os.environ, env, clear=True):
            config = load_governance_config()

        assert config.tool_profile == "admin"
        assert config.tool_denied_categories == ["role_write"]
        assert config.tool_denied_tools == ["redshift_delete_role_grant"]

    def test_env_overrides_yaml(self, tmp_path):
        yaml_path = tmp_path / "governance.yaml"
        yaml_path.write_text("tools:\n  profile: admin\n")
        env = _clear_governance_env()
        env["REDSHIFT_GOVERNANCE_CONFIG"] = str(yaml_path)
        env["REDSHIFT_TOOL_PROFILE"] = "read_only"
        with patch.dict(os.environ, env, clear=True):
            config = load_governance_config()

        assert config.tool_profile == "read_only"

    def test_explicit_path_argument(self, tmp_path):
        yaml_path = tmp_path / "governance.yaml"
        yaml_path.write_text("tools:\n  profile: operator\n")
        with patch.dict(os.environ, _clear_governance_env(), clear=True):
            config = load_governance_config(str(yaml_path))
        assert config.tool_profile == "operator"

    def test_empty_yaml_file(self, tmp_path):
        yaml_path = tmp_path / "governance.yaml"
        yaml_path.write_text("")
        with patch.dict(os.environ, _clear_governance_env(), clear=True):
            config = load_governance_config(str(yaml_path))
        assert config.tool_profile is None

    def test_missing_yaml_file(self):
        env = _clear_governance_env()
        env["REDSHIFT_GOVERNANCE_CONFIG"] = "/nonexistent/path/governance.yaml"
        with patch.dict(os.environ, env, clear=True):
            config = load_governance_config()
            # Should not crash, just warn and use env vars
            assert config.tool_profile is None


# ── Full Policy ───────────────────────────────────────────────────────

class TestBuildGovernancePolicy:

    def test_default_policy_is_inactive(self):
        policy = build_governance_policy(GovernanceConfig())
        assert not policy.active
        assert policy.check_tool_access("redshift_delete_role") == (True, "")

    def test_read_only_profile(self):
        policy = build_governance_policy(GovernanceConfig(tool_profile="read_only"))
        assert policy.active
        assert policy.check_tool_access("redshift_read_role")[0] is True
        assert policy.check_tool_access("redshift_create_role")[0] is False

    def test_denied_message_names_the_tool(self):
        policy = build_governance_policy(GovernanceConfig(tool_profile="read_only"))
        allowed, msg = policy.check_tool_access("redshift_delete_role_grant")
        assert not allowed
        assert "redshift_delete_role_grant" in msg
        assert "not permitted" in msg

    def test_admin_minus_role_writes(self):
        policy = build_governance_policy(
            GovernanceConfig(tool_profile="admin", tool_denied_categories=["role_write"])
        )
        assert policy.check_tool_access("redshift_create_role_grant")[0] is True
        assert policy.check_tool_access("redshift_delete_role")[0] is False

    def test_loads_from_env_when_no_config_given(self):
        env = _clear_governance_env()
        env["REDSHIFT_TOOL_PROFILE"] = "operator"
        with patch.dict(os.environ, env, clear=True):
            policy = build_governance_policy()
        assert policy.check_tool_access("redshift_create_role_grant")[0] is True
        assert policy.check_tool_access("redshift_create_role")[0] is False
