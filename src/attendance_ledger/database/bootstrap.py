from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, List, Mapping

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = Path(__file__).resolve().parents[3] / "database" / "schema.sql"

# Database selection comes from settings, not from the schema file.
_DB_SELECTION = re.compile(r"^\s*(?:CREATE\s+DATABASE|USE)\b[^;]*;[ \t]*$", re.IGNORECASE | re.MULTILINE)
_LINE_COMMENT = re.compile(r"^\s*--.*$", re.MULTILINE)
# A quoted literal or any run of text without quotes or semicolons.
_TOKEN = re.compile(r"'(?:\\.|''|[^'\\])*'|\"(?:\\.|[^\"\\])*\"|;|[^'\";]+|['\"]")


def split_statements(sql: str) -> List[str]:
    """Split a schema script on top-level semicolons."""

    sql = _LINE_COMMENT.sub("", _DB_SELECTION.sub("", sql))
    statements: List[str] = []
    current: List[str] = []
    for token in _TOKEN.findall(sql):
        if token == ";":
            statements.append("".join(current).strip())
            current = []
        else:
            current.append(token)
    statements.append("".join(current).strip())
    return [s for s in statements if s]


def _open(config: DBConfig, *, select_db: bool = True):
    params = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "use_pure": True,
    }
    if select_db:
        params["database"] = config.database
    return mysql.connector.connect(**params)


def ensure_database_exists(db_config: Mapping[str, Any]) -> None:
    config = DBConfig.from_mapping(db_config)
    conn = _open(config, select_db=False)
    try:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: Mapping[str, Any], *, schema_path: str | Path = DEFAULT_SCHEMA) -> int:
    """Create the database if needed and run every statement of the schema script.

    Returns the number of statements executed.
    """

    ensure_database_exists(db_config)
    path = Path(schema_path)
    statements = split_statements(path.read_text(encoding="utf-8"))

    conn = _open(DBConfig.from_mapping(db_config))
    try:
        cur = conn.cursor()
        for statement in statements:
            cur.execute(statement)
        conn.commit()
    finally:
        conn.close()
    logger.info("Applied %d schema statements from %s", len(statements), path)
    return len(statements)


def list_tables(db_config: Mapping[str, Any]) -> List[str]:
    conn = _open(DBConfig.from_mapping(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(row[0] for row in cur.fetchall())
    finally:
        conn.close()
