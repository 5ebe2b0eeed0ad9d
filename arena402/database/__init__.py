"""
Database integration layer for Arena402
"""

from typing import Union

import structlog

from arena402.config import GatewayConfig
from arena402.database.client import DatabaseClient
from arena402.database.memory import InMemoryDatabase

logger = structlog.get_logger()

Database = Union[DatabaseClient, InMemoryDatabase]


def create_database(config: GatewayConfig) -> Database:
    """Supabase when configured, otherwise the in-process store"""
    if config.uses_supabase:
        return DatabaseClient(config.supabase_url, config.supabase_key)

    if config.is_production:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_KEY must be set in production; "
            "the in-process store loses all grants on restart."
        )

    logger.warning("database_in_memory", message="Supabase not configured, using in-process store")
    return InMemoryDatabase()


__all__ = ["Database", "DatabaseClient", "InMemoryDatabase", "create_database"]
