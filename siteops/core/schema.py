"""SQLite schema management (code-first, owned by feature modules)."""

import logging

from siteops.core import db_client
from siteops.core.module_registry import get_all_indexes, get_all_table_schemas, register_default_modules


logger = logging.getLogger(__name__)


async def init_db(*, db_path: str | None = None) -> None:
    """Create all module tables and indexes if they do not exist."""
    register_default_modules()
    schemas = get_all_table_schemas()
    indexes = get_all_indexes()

    conn = await db_client.get_connection(db_path=db_path)
    for table_name, create_sql in schemas.items():
        await conn.execute(create_sql)
        logger.debug("Ensured table", extra={"table": table_name})
    for index_sql in indexes:
        await conn.execute(index_sql)
    await conn.commit()

    logger.info("Database schema initialized", extra={"tables": len(schemas), "indexes": len(indexes)})
