"""Database connection management."""

import os
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool


class DatabaseConfig:
    """Database configuration."""

    def __init__(self, config: Dict[str, Any]) -> None:
        """Initialize database config from dict."""
        self.dsn = config.get("dsn") or ""
        self.host = config.get("host", "localhost")
        self.port = config.get("port", 5432)
        self.database = config.get("database", "localpulse")
        self.user = config.get("user", "localpulse")
        self.sslmode = config.get("sslmode")
        self.max_pool_size = config.get("max_pool_size", 4)

        # Handle password from environment variable if specified
        password_env = config.get("password_env")
        if password_env:
            self.password = os.environ.get(password_env, "")
        else:
            self.password = config.get("password") or ""

    @property
    def connection_string(self) -> str:
        """Get psycopg connection string."""
        extra: Dict[str, Any] = {}
        if self.sslmode:
            extra["sslmode"] = self.sslmode
        if self.dsn:
            return make_conninfo(self.dsn, **extra)
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password or None,
            **extra,
        )


class Database:
    """Explicitly owned connection pool, passed to the components of a run."""

    def __init__(self, config: Dict[str, Any], pool: Optional[ConnectionPool] = None) -> None:
        self.config = DatabaseConfig(config)
        self._pool = pool

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = ConnectionPool(
                self.config.connection_string,
                min_size=1,
                max_size=self.config.max_pool_size,
                kwargs={"row_factory": dict_row},
                open=True,
            )
        return self._pool

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection, None, None]:
        """Borrow a connection for the duration of the block."""
        with self.pool.connection() as conn:
            yield conn

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
