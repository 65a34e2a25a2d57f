"""Per-configuration client: connection spec, shared registry and session facts."""
import logging

from redshift_access.config import ConnectionSpec, RedshiftConfig
from redshift_access.db import ConnectionRegistry, RedshiftConnection
from redshift_access.facts import LazyFact, serverless_fact, username_fact

logger = logging.getLogger(__name__)


class RedshiftClient:
    """Hands out the registry's connection for one configuration.

    The serverless flag and the acting username are cached here, so every
    operation that shares this client shares the facts.
    """

    def __init__(self, spec: ConnectionSpec, registry: ConnectionRegistry):
        self.spec = spec
        self.registry = registry
        self.serverless: LazyFact[bool] = serverless_fact()
        self.username: LazyFact[str] = username_fact()

    @classmethod
    def from_config(
        cls, cfg: RedshiftConfig, registry: ConnectionRegistry
    ) -> "RedshiftClient":
        cfg.validate()
        logger.debug("creating database client")
        return cls(cfg.connection_spec(), registry)

    async def connect(self) -> RedshiftConnection:
        return await self.registry.acquire(self.spec, self.username)

    async def is_serverless(self) -> bool:
        conn = await self.connect()
        return await self.serverless.get(conn)

    async def current_user(self) -> str:
        conn = await self.connect()
        return await self.username.get(conn)
