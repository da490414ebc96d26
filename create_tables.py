"""
create_tables.py
----------------
One-shot script to create the control-store tables (the tenant registry).
Tenant stores are created and migrated at registration time, not here.

Usage:
    python create_tables.py
"""

import asyncio

from empcare.core.config import get_settings
from empcare.core.logging import configure_logging, get_logger
from empcare.db.connections import TenantConnectionManager

logger = get_logger(__name__)


async def create_control_tables() -> None:
    settings = get_settings()
    configure_logging(settings)
    connections = TenantConnectionManager.from_settings(settings)
    try:
        await connections.create_control_schema()
        logger.info("Control tables created", store=connections.control_store_name)
    finally:
        await connections.close_all()


if __name__ == "__main__":
    asyncio.run(create_control_tables())
