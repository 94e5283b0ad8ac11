"""
Database configuration module for the uptime monitoring system.

This module creates and validates the asyncpg connection pool and applies the
packaged schema of the PostgreSQL stores.
"""

import logging
import os

import asyncpg

from uptime_monitor.config import MonitoringContext

# Module logger
logger = logging.getLogger(__name__)

SCHEMA_FILE = os.path.join(os.path.dirname(os.path.dirname(__file__)), "storage", "schema.sql")


async def initiate_db_pool(context: MonitoringContext) -> asyncpg.pool.Pool:
    """
    Create and validate a connection pool to the PostgreSQL database.

    Args:
        context: Configuration context containing database connection parameters.

    Returns:
        asyncpg.pool.Pool: A connection pool that can be used to execute database queries.

    Raises:
        Exception: If the database connection cannot be established.
    """
    pool: asyncpg.pool.Pool = await asyncpg.create_pool(
        dsn=context.dsn, max_size=context.db_pool_size
    )

    try:
        # Validate the connection by executing a simple query
        async with pool.acquire() as connection:
            await connection.fetchval("SELECT 1")
        logger.info("Database connection pool successfully created.")
        return pool
    except Exception as e:
        logger.error(f"Error: Could not connect to the database. {e}")
        await pool.close()
        raise


async def apply_schema(pool: asyncpg.pool.Pool, schema_file: str = SCHEMA_FILE) -> None:
    """
    Creates the tables of the PostgreSQL stores if they do not exist.

    Args:
        pool: The connection pool to use.
        schema_file: Path of the SQL file to execute.
    """
    with open(schema_file) as f:
        schema = f.read()

    async with pool.acquire() as connection:
        await connection.execute(schema)
    logger.info("Database schema applied.")
