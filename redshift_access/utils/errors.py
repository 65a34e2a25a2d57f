"""Error types, driver error classification and actionable tool messages."""
from typing import Optional

import psycopg

PG_INSUFFICIENT_PRIVILEGE = "42501"
PG_SERIALIZATION_FAILURE = "40001"
PG_DEADLOCK_DETECTED = "40P01"

_RETRYABLE_SQLSTATES = {PG_SERIALIZATION_FAILURE, PG_DEADLOCK_DETECTED}
_RETRYABLE_MESSAGES = ("conflict with concurrent transaction",)


class RedshiftAccessError(Exception):
    """Base class for every error raised by this package."""


class ConnectionOpenError(RedshiftAccessError):
    """A connection handle could not be opened or initialized."""


class FactLookupError(RedshiftAccessError):
    """A lazily computed session fact could not be retrieved."""


class TransactionError(RedshiftAccessError):
    """A transaction could not be started."""


class CommitError(TransactionError):
    """A transaction could not be committed."""


class StatementError(RedshiftAccessError):
    """A DDL statement or system view query failed."""

    def __init__(self, message: str, statement: str = None, identifier: str = None):
        super().__init__(message)
        self.statement = statement
        self.identifier = identifier


class RoleVerificationError(RedshiftAccessError):
    """A freshly created role is not visible in SVV_ROLES."""


class ContractError(RedshiftAccessError, ValueError):
    """Invalid input that must never be coerced or sent to the database."""


class InvalidGrantIdError(ContractError):
    """A role grant identifier does not have the role:<role>:<type>:<name> shape."""


class UnsupportedGrantToTypeError(ContractError):
    """A grant_to_type outside user, role and group."""


class InvalidIdentifierError(ContractError):
    """A name that cannot be represented in a durable identifier."""


def root_pq_error(e: BaseException) -> Optional[psycopg.Error]:
    """Follow the ``__cause__`` chain down to the driver error, if any."""
    seen = set()
    while e is not None and id(e) not in seen:
        if isinstance(e, psycopg.Error):
            return e
        seen.add(id(e))
        e = e.__cause__
    return None


def is_pq_error_with_code(e: BaseException, sqlstate: str) -> bool:
    pq_error = root_pq_error(e)
    return pq_error is not None and pq_error.sqlstate == sqlstate


def is_does_not_exist_error(e: BaseException) -> bool:
    """Redshift reports a missing role, user or group only through the message text."""
    return "does not exist" in str(e)


def is_retryable_pq_error(e: BaseException) -> bool:
    pq_error = root_pq_error(e)
    if pq_error is None:
        return False
    if pq_error.sqlstate in _RETRYABLE_SQLSTATES:
        return True
    msg = str(pq_error).lower()
    return any(m in msg for m in _RETRYABLE_MESSAGES)


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Connection failures (cluster unreachable, bad credentials)
    - Invalid input (bad grant identifiers, unsupported principal types)
    - Permission errors and failed DDL
    """
    if isinstance(e, ContractError):
        return f"Error: Invalid input. {e}"

    if isinstance(e, ConnectionOpenError):
        return (
            "Error: Cannot connect to Redshift. Possible causes:\n"
            "- REDSHIFT_HOST / REDSHIFT_PORT point to an unreachable cluster or workgroup\n"
            "- Credentials are wrong or expired\n"
            "- The database named by REDSHIFT_DATABASE was dropped or renamed\n"
            f"Details: {e}"
        )

    if isinstance(e, RoleVerificationError):
        return (
            f"Error: {e}. Redshift accepted the CREATE ROLE statement but the role "
            "is not visible in SVV_ROLES. Check that the connected user can see system views."
        )

    if is_pq_error_with_code(e, PG_INSUFFICIENT_PRIVILEGE):
        return (
            "Error: Permission denied. The connected user needs superuser or the "
            "CREATE ROLE / ACCESS SYSTEM TABLE privileges for this operation. "
            f"Details: {e}"
        )

    if isinstance(e, CommitError):
        return f"Error: {e}. The change was not applied; retry the operation."

    if isinstance(e, (StatementError, TransactionError, FactLookupError)):
        return f"Error: {e}"

    if isinstance(e, psycopg.OperationalError):
        return (
            "Error: Lost connection to Redshift. The cluster may be paused, resizing "
            f"or restarting. Retry in a few seconds. Details: {e}"
        )

    if isinstance(e, TimeoutError):
        return "Error: Connection timed out. Check REDSHIFT_CONNECT_TIMEOUT and network access."

    return f"Error: {type(e).__name__}: {str(e)}"
