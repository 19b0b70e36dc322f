from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, ContextManager, Iterator, Mapping, Optional, Protocol

import mysql.connector
from mysql.connector.constants import ClientFlag


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "DBConfig":
        return cls(
            host=str(values.get("host", "localhost")),
            port=int(values.get("port", 3306)),
            user=str(values.get("user", "root")),
            password=str(values.get("password", "")),
            database=str(values.get("database", "attendance_ledger")),
        )


class TransactionManager(Protocol):
    def transaction(self) -> ContextManager[object]:
        """All repository calls made inside the block commit or roll back together."""

        raise NotImplementedError

    def in_transaction(self) -> bool:
        raise NotImplementedError


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: We create short-lived connections per operation, except inside
    `transaction()`, where every repository call on the current thread shares
    one connection that is committed (or rolled back) when the outermost block exits.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._local = threading.local()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            autocommit=False,
            # rowcount reports matched rows, so an UPDATE that changes nothing still counts.
            client_flags=[ClientFlag.FOUND_ROWS],
        )

    def active_connection(self):
        return getattr(self._local, "conn", None)

    def in_transaction(self) -> bool:
        return self.active_connection() is not None

    @contextmanager
    def transaction(self) -> Iterator[object]:
        active = self.active_connection()
        if active is not None:
            # Nested block joins the outer transaction.
            yield active
            return

        conn = self.connect()
        self._local.conn = conn
        try:
            conn.start_transaction(isolation_level="READ COMMITTED")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            conn.close()
