"""Grants of a Redshift role to a user, a group or another role.

A grant is immutable; changing any field means revoke and grant again.
Its durable identifier is ``role:<role_name>:<grant_to_type>:<grant_to_name>``,
all lowercase.

Redshift's GRANT ROLE syntax names the principal kind for roles and groups
but not for users:

    GRANT ROLE analyst TO alice
    GRANT ROLE analyst TO ROLE manager
    GRANT ROLE analyst TO GROUP finance

REVOKE ROLE ... FROM follows the same rule.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import psycopg
from psycopg import sql

from redshift_access.db import RedshiftConnection
from redshift_access.utils.errors import (
    InvalidGrantIdError,
    InvalidIdentifierError,
    StatementError,
    UnsupportedGrantToTypeError,
    is_does_not_exist_error,
)

logger = logging.getLogger(__name__)

GRANT_ID_PREFIX = "role"
GRANT_ID_SEPARATOR = ":"


class GrantToType(str, Enum):
    USER = "user"
    ROLE = "role"
    GROUP = "group"


USER_GRANT_QUERY = """
    SELECT 1
    FROM SVV_USER_GRANTS
    WHERE LOWER(role_name) = LOWER(%s)
    AND LOWER(user_name) = LOWER(%s)
"""

# role_name is the grantee (child), granted_role_name the granted role (parent)
ROLE_GRANT_QUERY = """
    SELECT 1
    FROM SVV_ROLE_GRANTS
    WHERE LOWER(granted_role_name) = LOWER(%s)
    AND LOWER(role_name) = LOWER(%s)
"""


@dataclass(frozen=True)
class GrantDialect:
    """How one principal kind is spelled and verified."""

    keyword: Optional[str]
    verify_query: Optional[str]


# No system view exposes role grants to groups, so they cannot be verified.
GRANT_DIALECTS: dict[GrantToType, GrantDialect] = {
    GrantToType.USER: GrantDialect(keyword=None, verify_query=USER_GRANT_QUERY),
    GrantToType.ROLE: GrantDialect(keyword="ROLE", verify_query=ROLE_GRANT_QUERY),
    GrantToType.GROUP: GrantDialect(keyword="GROUP", verify_query=None),
}


def parse_grant_to_type(value: Union[str, GrantToType]) -> GrantToType:
    if isinstance(value, GrantToType):
        return value
    try:
        return GrantToType(str(value).strip().lower())
    except ValueError:
        raise UnsupportedGrantToTypeError(
            f"unsupported grant_to_type: {value!r} "
            f"(must be one of: {', '.join(t.value for t in GrantToType)})"
        ) from None


def _normalize_name(field_name: str, value: str) -> str:
    if not value or not value.strip():
        raise InvalidIdentifierError(f"{field_name} must not be empty")
    if value != value.strip():
        raise InvalidIdentifierError(
            f"{field_name} must not begin or end with whitespace: {value!r}"
        )
    normalized = value.lower()
    if GRANT_ID_SEPARATOR in normalized:
        raise InvalidIdentifierError(
            f"{field_name} must not contain {GRANT_ID_SEPARATOR!r}: {value!r}"
        )
    return normalized


@dataclass(frozen=True)
class RoleGrant:
    role_name: str
    grant_to_type: GrantToType
    grant_to_name: str

    def __post_init__(self):
        object.__setattr__(self, "role_name", _normalize_name("role_name", self.role_name))
        object.__setattr__(self, "grant_to_type", parse_grant_to_type(self.grant_to_type))
        object.__setattr__(
            self, "grant_to_name", _normalize_name("grant_to_name", self.grant_to_name)
        )

    @property
    def id(self) -> str:
        return encode_grant_id(self.role_name, self.grant_to_type, self.grant_to_name)

    @classmethod
    def from_id(cls, grant_id: str) -> "RoleGrant":
        return cls(*decode_grant_id(grant_id))

    @property
    def dialect(self) -> GrantDialect:
        return GRANT_DIALECTS[self.grant_to_type]


def encode_grant_id(
    role_name: str, grant_to_type: Union[str, GrantToType], grant_to_name: str
) -> str:
    return GRANT_ID_SEPARATOR.join(
        [
            GRANT_ID_PREFIX,
            role_name.lower(),
            parse_grant_to_type(grant_to_type).value,
            grant_to_name.lower(),
        ]
    )


def decode_grant_id(grant_id: str) -> tuple[str, GrantToType, str]:
    """Split an identifier back into (role_name, grant_to_type, grant_to_name)."""
    parts = grant_id.split(GRANT_ID_SEPARATOR)
    if len(parts) != 4:
        raise InvalidGrantIdError(f"invalid role grant ID format: {grant_id}")
    _, role_name, grant_to_type, grant_to_name = parts
    return role_name, parse_grant_to_type(grant_to_type), grant_to_name


def _principal(grant: RoleGrant) -> sql.Composable:
    name = sql.Identifier(grant.grant_to_name)
    keyword = grant.dialect.keyword
    if keyword is None:
        return name
    return sql.SQL("{} {}").format(sql.SQL(keyword), name)


def grant_statement(grant: RoleGrant) -> sql.Composed:
    return sql.SQL("GRANT ROLE {} TO {}").format(
        sql.Identifier(grant.role_name), _principal(grant)
    )


def revoke_statement(grant: RoleGrant) -> sql.Composed:
    return sql.SQL("REVOKE ROLE {} FROM {}").format(
        sql.Identifier(grant.role_name), _principal(grant)
    )


async def create_role_grant(
    db: RedshiftConnection,
    role_name: str,
    grant_to_type: Union[str, GrantToType],
    grant_to_name: str,
) -> RoleGrant:
    """Grant the role; the returned grant's ``id`` is the durable key."""
    grant = RoleGrant(role_name, grant_to_type, grant_to_name)

    async with db.transaction() as tx:
        try:
            await tx.execute(grant_statement(grant))
        except psycopg.Error as e:
            raise StatementError(
                f"could not grant role: {e}", statement="GRANT ROLE", identifier=grant.id
            ) from e
        await tx.commit()

    logger.info(f"Granted role {grant.role_name} to {grant.grant_to_type.value} {grant.grant_to_name}")
    return grant


async def read_role_grant(
    db: RedshiftConnection,
    role_name: str,
    grant_to_type: Union[str, GrantToType],
    grant_to_name: str,
) -> Optional[RoleGrant]:
    """Return the grant if Redshift still reports it, else None.

    Group grants cannot be observed and are returned as recorded.
    """
    grant = RoleGrant(role_name, grant_to_type, grant_to_name)
    query = grant.dialect.verify_query
    if query is None:
        logger.debug(f"No system view for {grant.grant_to_type.value} grants, trusting state for {grant.id}")
        return grant

    try:
        row = await db.query_row(query, (grant.role_name, grant.grant_to_name))
    except psycopg.Error as e:
        raise StatementError(
            f"error reading role grant: {e}", statement="SELECT", identifier=grant.id
        ) from e

    if row is None:
        logger.warning(
            f"Role grant {grant.role_name} to {grant.grant_to_type.value} "
            f"{grant.grant_to_name} not found"
        )
        return None
    return grant


async def delete_role_grant(db: RedshiftConnection, grant_id: str) -> bool:
    """Revoke the grant named by ``grant_id``.

    A missing role or grantee means the grant is already gone: the
    transaction is still committed and False is returned.
    """
    grant = RoleGrant.from_id(grant_id)
    revoked = True

    async with db.transaction() as tx:
        try:
            await tx.execute(revoke_statement(grant))
        except psycopg.Error as e:
            if not is_does_not_exist_error(e):
                raise StatementError(
                    f"could not revoke role: {e}", statement="REVOKE ROLE", identifier=grant_id
                ) from e
            logger.warning(f"Role or grantee does not exist, grant already removed: {e}")
            revoked = False
        await tx.commit()

    return revoked
