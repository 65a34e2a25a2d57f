"""Redshift roles: named collections of privileges.

Role names are case-insensitive; the lowercase name is both the stored
name and the durable identifier.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import psycopg
from psycopg import sql

from redshift_access.db import RedshiftConnection
from redshift_access.utils.errors import (
    InvalidIdentifierError,
    RoleVerificationError,
    StatementError,
)

logger = logging.getLogger(__name__)

ROLE_LOOKUP_QUERY = "SELECT role_name FROM SVV_ROLES WHERE role_name = %s"
ROLE_EXISTS_QUERY = "SELECT EXISTS(SELECT 1 FROM SVV_ROLES WHERE role_name = %s) AS role_exists"


@dataclass(frozen=True)
class Role:
    name: str

    @property
    def id(self) -> str:
        return self.name


def normalize_role_name(name: str) -> str:
    """Lowercase a role name or id. Surrounding whitespace is rejected, not trimmed."""
    if not name or not name.strip():
        raise InvalidIdentifierError("role name must not be empty")
    if name != name.strip():
        raise InvalidIdentifierError(
            f"role name must not begin or end with whitespace: {name!r}"
        )
    return name.lower()


def create_role_statement(name: str) -> sql.Composed:
    return sql.SQL("CREATE ROLE {}").format(sql.Identifier(name))


def rename_role_statement(old_name: str, new_name: str) -> sql.Composed:
    return sql.SQL("ALTER ROLE {} RENAME TO {}").format(
        sql.Identifier(old_name), sql.Identifier(new_name)
    )


def drop_role_statement(name: str) -> sql.Composed:
    return sql.SQL("DROP ROLE {}").format(sql.Identifier(name))


async def create_role(db: RedshiftConnection, name: str) -> Role:
    """Create the role and confirm SVV_ROLES lists it before committing."""
    role_name = normalize_role_name(name)

    async with db.transaction() as tx:
        try:
            await tx.execute(create_role_statement(role_name))
        except psycopg.Error as e:
            raise StatementError(
                f"could not create redshift role: {e}",
                statement="CREATE ROLE",
                identifier=role_name,
            ) from e

        try:
            found = await tx.query_value(ROLE_LOOKUP_QUERY, (role_name,))
        except psycopg.Error as e:
            raise StatementError(
                f"could not verify role creation for {name!r}: {e}",
                statement="SELECT SVV_ROLES",
                identifier=role_name,
            ) from e
        if found is None:
            raise RoleVerificationError(f"could not verify role creation for {name!r}")

        await tx.commit()

    logger.info(f"Created role {role_name}")
    return Role(name=role_name)


async def read_role(db: RedshiftConnection, role_id: str) -> Optional[Role]:
    """Return the role, or None when it no longer exists."""
    role_id = normalize_role_name(role_id)
    try:
        role_name = await db.query_value(ROLE_LOOKUP_QUERY, (role_id,))
    except psycopg.Error as e:
        raise StatementError(
            f"error reading role: {e}", statement="SELECT SVV_ROLES", identifier=role_id
        ) from e

    if role_name is None:
        logger.warning(f"Redshift role ({role_id}) not found")
        return None
    return Role(name=role_name)


async def update_role(db: RedshiftConnection, role_id: str, name: str) -> Role:
    """Rename the role when the normalized name changed.

    The returned role carries the new identifier.
    """
    role_id = normalize_role_name(role_id)
    new_name = normalize_role_name(name)
    if new_name == role_id:
        return Role(name=role_id)

    async with db.transaction() as tx:
        try:
            await tx.execute(rename_role_statement(role_id, new_name))
        except psycopg.Error as e:
            raise StatementError(
                f"error renaming role: {e}", statement="ALTER ROLE", identifier=role_id
            ) from e
        await tx.commit()

    logger.info(f"Renamed role {role_id} to {new_name}")
    return Role(name=new_name)


async def delete_role(db: RedshiftConnection, role_id: str) -> bool:
    """Drop the role. Returns False when it was already gone."""
    role_id = normalize_role_name(role_id)
    async with db.transaction() as tx:
        try:
            exists = await tx.query_value(ROLE_EXISTS_QUERY, (role_id,))
        except psycopg.Error as e:
            raise StatementError(
                f"error checking role existence: {e}",
                statement="SELECT SVV_ROLES",
                identifier=role_id,
            ) from e

        if not exists:
            logger.warning(f"Role with name {role_id} does not exist")
            await tx.commit()
            return False

        try:
            await tx.execute(drop_role_statement(role_id))
        except psycopg.Error as e:
            raise StatementError(
                f"error dropping role: {e}", statement="DROP ROLE", identifier=role_id
            ) from e
        await tx.commit()

    logger.info(f"Dropped role {role_id}")
    return True
