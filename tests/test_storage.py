"""Tests for the JSON and SQLite storage backends."""

import json

import pytest

from sorionlib.exceptions import ConfigurationError, DatabaseError
from sorionlib.storage import JSONBackend, SQLiteBackend, create_storage, matches


class TestMatches:

    def test_empty_filter_matches_all(self):
        assert matches({"a": 1}, None) is True
        assert matches({"a": 1}, {}) is True

    def test_fields_are_anded(self):
        record = {"guild": "1", "level": 3}
        assert matches(record, {"guild": "1", "level": 3}) is True
        assert matches(record, {"guild": "1", "level": 4}) is False

    def test_missing_field_does_not_match_none(self):
        assert matches({"a": 1}, {"b": None}) is False


class TestCreateStorage:

    def test_known_kinds(self, tmp_path):
        assert isinstance(create_storage("json", path=tmp_path / "db.json"), JSONBackend)
        assert isinstance(create_storage("SQLite", path=":memory:"), SQLiteBackend)

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            create_storage("mongodb")


class TestJSONBackend:

    @pytest.mark.asyncio
    async def test_crud(self, tmp_path):
        path = tmp_path / "data" / "db.json"
        async with JSONBackend(path) as db:
            first = await db.insert("warnings", {"user": "u1", "reason": "spam"})
            second = await db.insert("warnings", {"user": "u2", "reason": "spam"})
            assert (first["id"], second["id"]) == (1, 2)

            assert len(await db.get("warnings")) == 2
            assert await db.get("warnings", {"user": "u1"}) == [first]

            assert await db.update("warnings", {"reason": "spam"}, {"reason": "flood"}) == {"modified": 2}
            assert await db.delete("warnings", {"user": "u2"}) == {"deleted": 1}
            assert await db.get("missing") == []

        on_disk = json.loads(path.read_text())
        assert on_disk == {"warnings": [{"id": 1, "user": "u1", "reason": "flood"}]}

    @pytest.mark.asyncio
    async def test_reopen_continues_ids(self, tmp_path):
        path = tmp_path / "db.json"
        async with JSONBackend(path) as db:
            await db.insert("t", {"x": 1})
        async with JSONBackend(path) as db:
            record = await db.insert("t", {"x": 2})
            assert record["id"] == 2
            assert len(await db.get("t")) == 2

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, tmp_path):
        async with JSONBackend(tmp_path / "db.json") as db:
            await db.insert("t", {"x": 1})
            (record,) = await db.get("t")
            record["x"] = 99
            assert (await db.get("t"))[0]["x"] == 1

    @pytest.mark.asyncio
    async def test_not_connected(self, tmp_path):
        db = JSONBackend(tmp_path / "db.json")
        with pytest.raises(DatabaseError) as exc_info:
            await db.get("t")
        assert exc_info.value.operation == "get"

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text("[1, 2]")
        with pytest.raises(DatabaseError):
            await JSONBackend(path).connect()

    @pytest.mark.asyncio
    async def test_invalid_table_name(self, tmp_path):
        async with JSONBackend(tmp_path / "db.json") as db:
            with pytest.raises(DatabaseError):
                await db.insert("bad table", {"x": 1})


class TestSQLiteBackend:

    @pytest.mark.asyncio
    async def test_crud(self):
        async with SQLiteBackend(":memory:") as db:
            await db.query(
                "CREATE TABLE warnings (id INTEGER PRIMARY KEY, user TEXT, reason TEXT)"
            )
            first = await db.insert("warnings", {"user": "u1", "reason": "spam"})
            await db.insert("warnings", {"user": "u2", "reason": "spam"})
            assert first == {"id": 1, "user": "u1", "reason": "spam"}

            assert await db.get("warnings", {"user": "u1"}) == [first]
            assert await db.update("warnings", {"reason": "spam"}, {"reason": "flood"}) == {"modified": 2}
            assert await db.delete("warnings", {"user": "u2"}) == {"deleted": 1}
            assert await db.get("warnings") == [{"id": 1, "user": "u1", "reason": "flood"}]

    @pytest.mark.asyncio
    async def test_file_database(self, tmp_path):
        path = tmp_path / "nested" / "bot.db"
        async with SQLiteBackend(path) as db:
            await db.query("CREATE TABLE t (id INTEGER PRIMARY KEY, x INTEGER)")
            await db.insert("t", {"x": 1})
        async with SQLiteBackend(path) as db:
            assert await db.query("SELECT x FROM t WHERE x = ?", (1,)) == [{"x": 1}]

    @pytest.mark.asyncio
    async def test_empty_patch_is_noop(self):
        async with SQLiteBackend(":memory:") as db:
            assert await db.update("t", {}, {}) == {"modified": 0}

    @pytest.mark.asyncio
    async def test_sql_error_wrapped(self):
        async with SQLiteBackend(":memory:") as db:
            with pytest.raises(DatabaseError) as exc_info:
                await db.get("missing")
            assert exc_info.value.table == "missing"

    @pytest.mark.asyncio
    async def test_invalid_column_rejected(self):
        async with SQLiteBackend(":memory:") as db:
            await db.query("CREATE TABLE t (id INTEGER PRIMARY KEY, x INTEGER)")
            with pytest.raises(DatabaseError):
                await db.get("t", {"x; DROP TABLE t": 1})

    @pytest.mark.asyncio
    async def test_not_connected(self):
        with pytest.raises(DatabaseError):
            await SQLiteBackend(":memory:").insert("t", {"x": 1})

    @pytest.mark.asyncio
    async def test_close_twice(self):
        db = SQLiteBackend(":memory:")
        await db.connect()
        await db.close()
        await db.close()
        assert db.connected is False
