"""Configuration for the Redshift Access MCP Server.

Connection settings mirror the libpq parameters Redshift accepts; retry
settings only apply to destructive role operations.
"""
import os
from dataclasses import dataclass, field

from psycopg.conninfo import make_conninfo

SSL_MODES = ("require", "disable", "verify-ca", "verify-full")

DEFAULT_PORT = 5439
DEFAULT_MAX_CONNECTIONS = 20


@dataclass(frozen=True)
class ConnectionSpec:
    """Registry key plus the pool limits used when a handle has to be opened."""

    conninfo: str
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: float = 30.0
    driver: str = "psycopg"


@dataclass
class RedshiftConfig:
    """Server configuration loaded from environment variables."""

    # Redshift connection
    host: str = field(default_factory=lambda: os.environ.get("REDSHIFT_HOST", ""))
    port: int = field(
        default_factory=lambda: int(os.environ.get("REDSHIFT_PORT", str(DEFAULT_PORT)))
    )
    username: str = field(
        default_factory=lambda: os.environ.get("REDSHIFT_USER", "root")
    )
    password: str = field(
        default_factory=lambda: os.environ.get("REDSHIFT_PASSWORD", ""), repr=False
    )
    database: str = field(
        default_factory=lambda: os.environ.get("REDSHIFT_DATABASE", "redshift")
    )
    sslmode: str = field(
        default_factory=lambda: os.environ.get("REDSHIFT_SSLMODE", "require")
    )

    # Pool settings (zero or -1 means unlimited)
    max_connections: int = field(
        default_factory=lambda: int(
            os.environ.get("REDSHIFT_MAX_CONNECTIONS", str(DEFAULT_MAX_CONNECTIONS))
        )
    )
    connect_timeout: int = field(
        default_factory=lambda: int(os.environ.get("REDSHIFT_CONNECT_TIMEOUT", "30"))
    )

    # Retry behavior for destructive operations
    retry_attempts: int = field(
        default_factory=lambda: int(os.environ.get("REDSHIFT_RETRY_ATTEMPTS", "5"))
    )
    retry_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("REDSHIFT_RETRY_DELAY", "0.5"))
    )
    retry_max_delay: float = field(
        default_factory=lambda: float(os.environ.get("REDSHIFT_RETRY_MAX_DELAY", "10.0"))
    )

    # Governance (tool access control, see redshift_access/governance/policy.py)
    governance_config_path: str = field(
        default_factory=lambda: os.environ.get("REDSHIFT_GOVERNANCE_CONFIG", "")
    )

    def validate(self):
        """Reject settings the driver would only fail on much later."""
        if self.sslmode not in SSL_MODES:
            raise ValueError(
                f"sslmode must be one of {', '.join(SSL_MODES)}, got: {self.sslmode}"
            )
        if self.max_connections < -1:
            raise ValueError(
                f"max_connections must be at least -1, got: {self.max_connections}"
            )

    def conninfo(self) -> str:
        """Build the libpq connection string.

        The password is left out when unset so that .pgpass or PGPASSWORD
        can supply it.
        """
        params = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "sslmode": self.sslmode,
            "connect_timeout": self.connect_timeout,
        }
        if self.password:
            params["password"] = self.password
        return make_conninfo(**params)

    def connection_spec(self) -> ConnectionSpec:
        return ConnectionSpec(
            conninfo=self.conninfo(),
            max_connections=self.max_connections,
            connect_timeout=float(self.connect_timeout),
        )


config = RedshiftConfig()
