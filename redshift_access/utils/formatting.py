"""Response formatting helpers."""
import json
from enum import Enum
from typing import Optional

from redshift_access.resources.role import Role
from redshift_access.resources.role_grant import RoleGrant


class ResponseFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


def format_role(
    role: Optional[Role],
    role_id: str = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        if role is None:
            return json.dumps({"id": "", "exists": False, "requested_id": role_id}, indent=2)
        return json.dumps({"id": role.id, "name": role.name, "exists": True}, indent=2)
    if role is None:
        return (
            f"_Role `{role_id}` does not exist._ "
            "Remove it from tracked state or create it again."
        )
    return "\n".join(
        [
            f"## Role: `{role.name}`\n",
            f"- **id**: `{role.id}`",
            f"- **name**: {role.name}",
        ]
    )


def format_role_grant(
    grant: Optional[RoleGrant],
    grant_id: str = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        if grant is None:
            return json.dumps({"id": "", "exists": False, "requested_id": grant_id}, indent=2)
        return json.dumps(
            {
                "id": grant.id,
                "role_name": grant.role_name,
                "grant_to_type": grant.grant_to_type.value,
                "grant_to_name": grant.grant_to_name,
                "exists": True,
            },
            indent=2,
        )
    if grant is None:
        return (
            f"_Role grant `{grant_id}` no longer exists._ "
            "Remove it from tracked state or grant it again."
        )
    lines = [f"## Role Grant: `{grant.id}`\n"]
    lines.append("| Role | Grantee Type | Grantee |")
    lines.append("| --- | --- | --- |")
    lines.append(
        f"| {grant.role_name} | {grant.grant_to_type.value} | {grant.grant_to_name} |"
    )
    return "\n".join(lines)
