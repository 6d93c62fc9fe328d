"""Storage connection collaborator.

The gateway only needs the storage connection to be established before it
accepts traffic, and released on shutdown. The schema and the queries made
through it belong to the route modules.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class StorageConnector(Protocol):
    """Anything that can open and close the long-lived storage connection."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...


class SqlAlchemyStorageConnector:
    """Open a SQLAlchemy engine and verify it with a round trip."""

    def __init__(self, database_url: str, *, pool_pre_ping: bool = True) -> None:
        self.database_url = database_url
        self._pool_pre_ping = pool_pre_ping
        self.engine: Engine | None = None

    def _connect_sync(self) -> Engine:
        engine = create_engine(self.database_url, pool_pre_ping=self._pool_pre_ping)
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    async def connect(self) -> None:
        """Create the engine and check connectivity in a worker thread.

        Raises:
            SQLAlchemyError: If the database cannot be reached.
        """
        backend = make_url(self.database_url).get_backend_name()
        self.engine = await asyncio.to_thread(self._connect_sync)
        logger.info("storage.connected", extra={"backend": backend})

    async def close(self) -> None:
        if self.engine is None:
            return
        await asyncio.to_thread(self.engine.dispose)
        self.engine = None
        logger.info("storage.closed")
