# src/costcompass/core/db.py

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import aiosqlite
import asyncpg

from .config import config
from .exceptions import ConnectionError

logger = logging.getLogger(__name__)

# Null deployments are stored as '' so that the (namespace, deployment, date)
# uniqueness constraint also holds for namespace-level rows.
SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        node_type TEXT,
        cpu_capacity_cores REAL NOT NULL CHECK (cpu_capacity_cores >= 0),
        memory_capacity_gb REAL NOT NULL CHECK (memory_capacity_gb >= 0),
        hourly_rate REAL NOT NULL CHECK (hourly_rate >= 0),
        updated_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS pods (
        id TEXT PRIMARY KEY,
        namespace TEXT NOT NULL,
        name TEXT NOT NULL,
        node_name TEXT,
        node_id TEXT,
        deployment TEXT,
        cpu_request_cores REAL NOT NULL CHECK (cpu_request_cores >= 0),
        memory_request_gb REAL NOT NULL CHECK (memory_request_gb >= 0),
        created_at TEXT,
        updated_at TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_pods_namespace ON pods(namespace);",
    """
    CREATE TABLE IF NOT EXISTS usage_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pod_id TEXT NOT NULL REFERENCES pods(id),
        cpu_usage_cores REAL NOT NULL CHECK (cpu_usage_cores >= 0),
        memory_usage_gb REAL NOT NULL CHECK (memory_usage_gb >= 0),
        observed_at TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_usage_snapshots_pod_time ON usage_snapshots(pod_id, observed_at);",
    """
    CREATE TABLE IF NOT EXISTS cost_calculations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        namespace TEXT NOT NULL,
        deployment TEXT NOT NULL DEFAULT '',
        daily_cost REAL NOT NULL,
        wasted_cost REAL NOT NULL,
        efficiency_score REAL NOT NULL,
        hourly_cost REAL,
        requested_hourly_cost REAL,
        pod_count INTEGER,
        calculation_date TEXT NOT NULL,
        calculated_at TEXT NOT NULL,
        UNIQUE(namespace, deployment, calculation_date)
    );
    """,
]

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        node_type TEXT,
        cpu_capacity_cores DOUBLE PRECISION NOT NULL CHECK (cpu_capacity_cores >= 0),
        memory_capacity_gb DOUBLE PRECISION NOT NULL CHECK (memory_capacity_gb >= 0),
        hourly_rate DOUBLE PRECISION NOT NULL CHECK (hourly_rate >= 0),
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS pods (
        id TEXT PRIMARY KEY,
        namespace TEXT NOT NULL,
        name TEXT NOT NULL,
        node_name TEXT,
        node_id TEXT,
        deployment TEXT,
        cpu_request_cores DOUBLE PRECISION NOT NULL CHECK (cpu_request_cores >= 0),
        memory_request_gb DOUBLE PRECISION NOT NULL CHECK (memory_request_gb >= 0),
        created_at TIMESTAMP WITH TIME ZONE,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_pods_namespace ON pods(namespace);
    """,
    """
    CREATE TABLE IF NOT EXISTS usage_snapshots (
        id BIGSERIAL PRIMARY KEY,
        pod_id TEXT NOT NULL REFERENCES pods(id),
        cpu_usage_cores DOUBLE PRECISION NOT NULL CHECK (cpu_usage_cores >= 0),
        memory_usage_gb DOUBLE PRECISION NOT NULL CHECK (memory_usage_gb >= 0),
        observed_at TIMESTAMP WITH TIME ZONE NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_usage_snapshots_pod_time ON usage_snapshots(pod_id, observed_at DESC, id DESC);
    """,
    """
    CREATE TABLE IF NOT EXISTS cost_calculations (
        id BIGSERIAL PRIMARY KEY,
        namespace TEXT NOT NULL,
        deployment TEXT NOT NULL DEFAULT '',
        daily_cost DOUBLE PRECISION NOT NULL,
        wasted_cost DOUBLE PRECISION NOT NULL,
        efficiency_score DOUBLE PRECISION NOT NULL,
        hourly_cost DOUBLE PRECISION,
        requested_hourly_cost DOUBLE PRECISION,
        pod_count INTEGER,
        calculation_date DATE NOT NULL,
        calculated_at TIMESTAMP WITH TIME ZONE NOT NULL,
        UNIQUE(namespace, deployment, calculation_date)
    );
    """,
]


class DatabaseManager:
    """
    Manages the connection to the snapshot store (SQLite or PostgreSQL).

    SQLite uses a single persistent aiosqlite connection; PostgreSQL uses an
    asyncpg connection pool. Nothing connects until connect() is awaited.
    """

    def __init__(
        self,
        db_type: Optional[str] = None,
        db_path: Optional[str] = None,
        connection_string: Optional[str] = None,
        schema: Optional[str] = None,
    ):
        self.db_type = db_type or config.DB_TYPE
        self.db_path = db_path or config.DB_PATH
        self.connection_string = connection_string or config.DB_CONNECTION_STRING
        self.schema = schema or config.DB_SCHEMA
        self.connection: Optional[aiosqlite.Connection] = None
        self.pool: Optional[asyncpg.Pool] = None
        # Serializes transactions on the shared SQLite connection.
        self.write_lock = asyncio.Lock()

    async def connect(self):
        """
        Establishes a connection to the configured database and makes sure the
        schema exists.
        """
        try:
            if self.db_type == "sqlite":
                self.connection = await aiosqlite.connect(self.db_path)
                await self.connection.execute("PRAGMA foreign_keys = ON")
                logger.info("Successfully connected to SQLite database.")
                await self.setup_sqlite()
            elif self.db_type == "postgres":
                self.pool = await asyncpg.create_pool(
                    dsn=self.connection_string,
                    min_size=1,
                    max_size=10,
                    server_settings={"search_path": self.schema},
                )
                logger.info("Successfully initialized PostgreSQL connection pool.")
                await self.setup_postgres()
            else:
                raise ValueError(f"Unsupported database type '{self.db_type}'.")
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Could not connect to the database: {e}")
            raise ConnectionError(f"Could not connect to the {self.db_type} database: {e}") from e

    @asynccontextmanager
    async def connection_scope(self):
        """
        Yields a database connection.
        For PostgreSQL, acquires a connection from the pool and releases it.
        For SQLite, yields the single persistent connection.
        """
        if self.db_type == "postgres":
            if self.pool is None:
                await self.connect()
            async with self.pool.acquire() as conn:
                yield conn
        else:
            if self.connection is None:
                await self.connect()
            yield self.connection

    async def close(self):
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed.")
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            logger.info("Database connection closed.")

    async def setup_sqlite(self):
        """
        Creates the necessary tables for SQLite if they don't exist.
        """
        if self.connection is None:
            logger.error("Cannot setup SQLite, no connection available.")
            return

        for statement in SQLITE_SCHEMA:
            await self.connection.execute(statement)
        await self.connection.commit()
        logger.info("SQLite schema is up to date.")

    async def setup_postgres(self):
        """
        Creates the necessary tables for PostgreSQL if they don't exist.
        """
        if self.pool is None:
            logger.error("Cannot setup Postgres, no connection pool available.")
            return

        async with self.pool.acquire() as conn:
            await conn.execute(f'CREATE SCHEMA IF NOT EXISTS "{self.schema}";')
            for statement in POSTGRES_SCHEMA:
                await conn.execute(statement)
        logger.info("PostgreSQL schema is up to date.")


# Shared instance; connects lazily on first use.
db_manager = DatabaseManager()
