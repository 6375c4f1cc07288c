import asyncio
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import aiosqlite

from ohmydashboard.db import connection
from ohmydashboard.db.query import (
    CliQuery,
    DriverQuery,
    FallbackQuery,
    QueryError,
    parse_json_rows,
    quote_literal,
)
from ohmydashboard.db.repositories import SqliteRepository

_SCHEMA = """
CREATE TABLE project (id TEXT PRIMARY KEY, worktree TEXT, vcs TEXT, time_created INTEGER, time_updated INTEGER);
CREATE TABLE session (
    id TEXT PRIMARY KEY, project_id TEXT, parent_id TEXT, slug TEXT, directory TEXT,
    title TEXT, version TEXT, time_created INTEGER, time_updated INTEGER
);
CREATE TABLE message (id TEXT PRIMARY KEY, session_id TEXT, time_created INTEGER, time_updated INTEGER, data TEXT);
CREATE TABLE part (id TEXT PRIMARY KEY, message_id TEXT, session_id TEXT, time_created INTEGER, data TEXT);
"""


class _FakeQuery:
    def __init__(self, rows=None, fail: bool = False) -> None:
        self.rows = rows or []
        self.fail = fail
        self.statements: list[str] = []

    async def query(self, sql: str):
        self.statements.append(sql)
        if self.fail:
            raise QueryError("boom")
        return list(self.rows)


class SqliteRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "opencode.db"

        async with aiosqlite.connect(self.db_path) as db:
            await db.executescript(_SCHEMA)
            await db.execute(
                "INSERT INTO project VALUES (?, ?, ?, ?, ?)",
                ("proj_1", "/work/app", "git", 1700000000000, 1700000000000),
            )
            await db.execute(
                "INSERT INTO session VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                ("ses_1", "proj_1", None, "brave-otter", "/work/app", "Refactor", "1.2.0", 1700000000, 1700000300),
            )
            message_data = {
                "role": "assistant",
                "agent": "build",
                "modelID": "gpt-5.2",
                "providerID": "openai",
                "cost": 0.4,
                "time": {"created": 1700000001000, "completed": 1700000009000},
                "tokens": {"input": 12, "output": 30, "reasoning": 2, "cache": {"read": 100, "write": 0}},
            }
            await db.execute(
                "INSERT INTO message VALUES (?, ?, ?, ?, ?)",
                ("msg_1", "ses_1", 1700000001000, 1700000009000, json.dumps(message_data)),
            )
            await db.execute(
                "INSERT INTO message VALUES (?, ?, ?, ?, ?)",
                ("msg_2", "ses_other", 1700000002000, 1700000002000, json.dumps({"role": "user"})),
            )
            await db.execute(
                "INSERT INTO part VALUES (?, ?, ?, ?, ?)",
                ("prt_1", "msg_1", "ses_1", 1700000001000, json.dumps({"type": "text", "text": "All done"})),
            )
            await db.commit()

        self.repo = SqliteRepository(DriverQuery(self.db_path))

    async def asyncTearDown(self) -> None:
        await connection.close_connection()
        self._tmp.cleanup()

    async def test_reads_snake_case_tables(self) -> None:
        projects = await self.repo.list_projects()
        sessions = await self.repo.list_sessions()

        self.assertEqual([(p.id, p.vcs) for p in projects], [("proj_1", "git")])
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0].project_id, "proj_1")
        self.assertEqual(sessions[0].time.updated, 1700000300000)

    async def test_message_data_blob_is_normalized(self) -> None:
        messages = await self.repo.list_messages("ses_1")

        self.assertEqual(len(messages), 1)
        message = messages[0]
        self.assertEqual((message.role, message.agent, message.model_id), ("assistant", "build", "gpt-5.2"))
        self.assertEqual(message.tokens.cache_read, 100)
        self.assertEqual(message.completed, 1700000009000)
        self.assertEqual(len(await self.repo.list_messages()), 2)

    async def test_parts_filtered_by_message(self) -> None:
        parts = await self.repo.list_parts("msg_1")
        self.assertEqual([(p.type, p.text) for p in parts], [("text", "All done")])
        self.assertEqual(await self.repo.list_parts("msg_2"), [])

    async def test_quoted_ids_are_treated_as_values(self) -> None:
        self.assertEqual(await self.repo.list_messages("x' OR '1'='1"), [])

    async def test_missing_table_reads_as_empty(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DROP TABLE project")
            await db.commit()
        await connection.close_connection()

        self.assertEqual(await self.repo.list_projects(), [])

    async def test_query_failures_become_empty_results(self) -> None:
        repo = SqliteRepository(_FakeQuery(fail=True))
        self.assertEqual(await repo.list_sessions(), [])
        self.assertEqual(await repo.list_messages("ses_1"), [])

    async def test_filter_without_matching_column_skips_query(self) -> None:
        fake = _FakeQuery(rows=[{"name": "id"}])
        repo = SqliteRepository(fake)

        self.assertEqual(await repo.list_parts("msg_1"), [])
        self.assertEqual(fake.statements, ["PRAGMA table_info(part)"])

    async def test_schema_mismatch_does_not_count_as_driver_failure(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DROP TABLE part")
            await db.execute("CREATE TABLE part (id TEXT PRIMARY KEY, data TEXT)")
            await db.commit()
        driver = DriverQuery(self.db_path, max_failures=1)
        repo = SqliteRepository(driver)

        self.assertEqual(await repo.list_parts("msg_1"), [])
        self.assertEqual(driver.failures, 0)
        self.assertFalse(driver.disabled)

    async def test_concurrent_cold_reads_share_one_connection(self) -> None:
        repo = SqliteRepository(FallbackQuery.for_database(self.db_path))
        real_connect = aiosqlite.connect
        opened = []

        def _spy(*args, **kwargs):
            conn = real_connect(*args, **kwargs)
            opened.append(conn)
            return conn

        with patch.object(connection.aiosqlite, "connect", side_effect=_spy):
            sessions, messages = await asyncio.gather(repo.list_sessions(), repo.list_messages())

        self.assertEqual((len(sessions), len(messages)), (1, 2))
        self.assertEqual(len(opened), 1)
        self.assertEqual(list(connection._connections.values()), opened)

    async def test_statement_error_keeps_shared_connection(self) -> None:
        driver = DriverQuery(self.db_path)
        await driver.query("SELECT 1")
        shared = connection._connections[str(self.db_path)]

        with self.assertRaises(QueryError):
            await driver.query("SELECT * FROM no_such_table")

        self.assertIs(connection._connections[str(self.db_path)], shared)
        self.assertEqual(await driver.query("SELECT count(*) AS n FROM session"), [{"n": 1}])

    async def test_discard_ignores_stale_connection(self) -> None:
        driver = DriverQuery(self.db_path)
        await driver.query("SELECT 1")
        shared = connection._connections[str(self.db_path)]

        await connection.discard_connection(self.db_path, object())

        self.assertIs(connection._connections[str(self.db_path)], shared)


class QueryStrategyTests(unittest.IsolatedAsyncioTestCase):
    async def asyncTearDown(self) -> None:
        await connection.close_connection()

    def test_quote_literal_doubles_single_quotes(self) -> None:
        self.assertEqual(quote_literal("o'brien"), "'o''brien'")

    def test_parse_cli_output(self) -> None:
        self.assertEqual(parse_json_rows(b""), [])
        self.assertEqual(parse_json_rows(b'[{"id": "a"}, 3]\n'), [{"id": "a"}])
        with self.assertRaises(QueryError):
            parse_json_rows(b"Error: no such table")

    async def test_driver_disables_after_repeated_failures(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            driver = DriverQuery(Path(tmp) / "missing.db", max_failures=3)
            for _ in range(3):
                with self.assertRaises(QueryError):
                    await driver.query("SELECT 1")
            self.assertTrue(driver.disabled)
            with self.assertRaises(QueryError):
                await driver.query("SELECT 1")
            self.assertEqual(driver.failures, 3)

    async def test_missing_cli_binary_raises_query_error(self) -> None:
        cli = CliQuery(Path("/nonexistent/opencode.db"), binary="ohmydashboard-no-such-sqlite3")
        with self.assertRaises(QueryError):
            await cli.query("SELECT 1")

    async def test_fallback_used_when_driver_fails(self) -> None:
        primary = _FakeQuery(fail=True)
        primary.disabled = False
        fallback = _FakeQuery(rows=[{"id": "cli"}])

        runner = FallbackQuery(primary, fallback)

        self.assertEqual(await runner.query("SELECT * FROM session"), [{"id": "cli"}])
        self.assertEqual(fallback.statements, ["SELECT * FROM session"])

    async def test_disabled_driver_is_skipped(self) -> None:
        primary = _FakeQuery(rows=[{"id": "driver"}])
        primary.disabled = True
        fallback = _FakeQuery(rows=[{"id": "cli"}])

        runner = FallbackQuery(primary, fallback)

        self.assertEqual(await runner.query("SELECT 1"), [{"id": "cli"}])
        self.assertEqual(primary.statements, [])
        self.assertTrue(runner.driver_disabled)

    async def test_both_paths_failing_raises(self) -> None:
        primary = _FakeQuery(fail=True)
        primary.disabled = False
        runner = FallbackQuery(primary, _FakeQuery(fail=True))
        with self.assertRaises(QueryError):
            await runner.query("SELECT 1")


if __name__ == "__main__":
    unittest.main()
