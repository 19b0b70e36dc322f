from __future__ import annotations

from datetime import time, timedelta

import pytest

from attendance_ledger.database.bootstrap import DEFAULT_SCHEMA, split_statements
from attendance_ledger.database.mysql_base import build_where, to_time


def test_split_statements_ignores_database_selection_and_comments():
    sql = (
        "CREATE DATABASE IF NOT EXISTS asistencia;\n"
        "USE asistencia;\n"
        "-- empleados\n"
        "CREATE TABLE a (id INT);\n"
        "INSERT INTO a VALUES ('x;y'), ('it''s');\n"
        "CREATE TABLE b (id INT)"
    )

    assert split_statements(sql) == [
        "CREATE TABLE a (id INT)",
        "INSERT INTO a VALUES ('x;y'), ('it''s')",
        "CREATE TABLE b (id INT)",
    ]


def test_bundled_schema_creates_tables():
    statements = split_statements(DEFAULT_SCHEMA.read_text(encoding="utf-8"))

    assert statements
    assert any("ledger_heads" in s for s in statements)
    assert not any(s.upper().startswith("USE ") for s in statements)


def test_to_time_accepts_connector_variants():
    assert to_time(None) is None
    assert to_time(time(8, 30)) == time(8, 30)
    assert to_time(timedelta(hours=20, minutes=15)) == time(20, 15)
    assert to_time("08:30:00") == time(8, 30)

    with pytest.raises(ValueError):
        to_time("ocho")
    with pytest.raises(TypeError):
        to_time(830)


def test_build_where():
    assert build_where([]) == "1=1"
    assert build_where(["a = %s", "b = %s OR c = %s"]) == "(a = %s) AND (b = %s OR c = %s)"
