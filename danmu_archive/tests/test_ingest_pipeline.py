import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock
from zoneinfo import ZoneInfo

import aiosqlite

from danmu_archive.db.repositories.ingest_state import SqliteIngestStateRepository
from danmu_archive.db.repositories.lives import SqliteLiveRepository
from danmu_archive.db.repositories.messages import SqliteMessageRepository
from danmu_archive.db.repositories.senders import SqliteSenderRegistry
from danmu_archive.db.sqlite_migrations import run_migrations
from danmu_archive.ingest import ingest_file
from danmu_archive.live_start import AssCommentStartTime, LiveTableStartTime

SHANGHAI = ZoneInfo("Asia/Shanghai")

_EVENTS = [
    "[Events]",
    "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
    "Dialogue: 0,0:00:01.50,0:00:09.50,Danmu,Alice (1),0,0,0,,{\\b1}hello{\\b0}",
    "Dialogue: 0,0:00:02.00,0:00:10.00,Danmu,Guest,0,0,0,,anonymous",
    "Dialogue: 0,0:00:03.25,0:00:11.00,Danmu,Bob (2),0,0,0,,hi, there",
]


def _recording(live_id: str | None = "abc123", start: str | None = "2025-01-01 00:00:00", events=None) -> str:
    lines = ["[Script Info]"]
    if live_id is not None:
        lines.append(f"; LiveID: {live_id}")
    if start is not None:
        lines.append(f"; LiveStartTime: {start}")
    lines += ["ScriptType: v4.00+", ""]
    lines += _EVENTS if events is None else events
    return "\n".join(lines) + "\n"


class IngestPipelineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.messages = SqliteMessageRepository(self.db)
        self.senders = SqliteSenderRegistry(self.db)
        self.lives = SqliteLiveRepository(self.db, tz=SHANGHAI)
        self.tmpdir = tempfile.TemporaryDirectory()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        self.tmpdir.cleanup()

    def _write(self, text: str, name: str = "live.ass") -> Path:
        path = Path(self.tmpdir.name) / name
        path.write_text(text, encoding="utf-8")
        return path

    def _sources(self, path: Path, live_id: str = "abc123"):
        return [LiveTableStartTime(self.lives, live_id), AssCommentStartTime(path, tz=SHANGHAI)]

    async def _contents(self, live_id: str = "abc123") -> list[tuple]:
        rows = await self.messages.list_for_live(live_id)
        return [(r["start_time"], r["send_time"], r["uid"], r["content"]) for r in rows]

    async def test_end_to_end_with_comment_start_time(self) -> None:
        path = self._write(_recording())
        result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.status, "ok")
        self.assertEqual(result.liveId, "abc123")
        self.assertEqual((result.parsedCount, result.anonymousCount, result.persistedCount), (3, 1, 2))
        self.assertEqual(result.sendersCreated, 2)
        self.assertEqual(result.startTimeSource, "ass_comment")
        self.assertEqual(result.startTime, "2025-01-01T00:00:00+08:00")
        # 2025-01-01 00:00:00 in Asia/Shanghai is 16:00 UTC the day before
        self.assertEqual(
            await self._contents(),
            [
                (1.5, "2024-12-31 16:00:01", 1, "hello"),
                (3.25, "2024-12-31 16:00:03", 2, "hi, there"),
            ],
        )
        self.assertEqual((await self.senders.get(1))["name"], "Alice")
        self.assertEqual((await self.senders.get(2))["name"], "Bob")

    async def test_reingest_yields_identical_rows(self) -> None:
        path = self._write(_recording())
        await ingest_file(path, self.db, sources=self._sources(path))
        first = await self._contents()

        again = await ingest_file(path, self.db, force=True, sources=self._sources(path))

        self.assertEqual(again.status, "ok")
        self.assertEqual(again.sendersCreated, 0)
        self.assertEqual(await self._contents(), first)

    async def test_store_start_time_wins_over_comment(self) -> None:
        await self.lives.record_start_time("abc123", datetime(2025, 3, 1, 20, 0, tzinfo=SHANGHAI))
        path = self._write(_recording())

        result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.startTimeSource, "live_table")
        self.assertEqual((await self._contents())[0][1], "2025-03-01 12:00:01")

    async def test_unresolved_start_time_writes_nothing(self) -> None:
        path = self._write(_recording(start=None))

        result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.status, "no_start_time")
        self.assertIn("abc123", result.error)
        self.assertFalse(result.succeeded)
        self.assertEqual(await self.messages.count_for_live("abc123"), 0)
        self.assertIsNone(await self.senders.get(1))

    async def test_missing_live_id(self) -> None:
        path = self._write(_recording(live_id=None))
        result = await ingest_file(path, self.db, sources=self._sources(path))
        self.assertEqual(result.status, "no_live_id")
        self.assertEqual(result.parsedCount, 0)

    async def test_no_events(self) -> None:
        path = self._write(_recording(events=["[Events]", "Format: Layer, Start"]))
        result = await ingest_file(path, self.db, sources=self._sources(path))
        self.assertEqual(result.status, "no_records")

    async def test_parse_skips_are_reported(self) -> None:
        events = _EVENTS + ["Dialogue: 0,xx,0:00:05.00,Danmu,Eve (5),0,0,0,,bad"]
        path = self._write(_recording(events=events))
        result = await ingest_file(path, self.db, sources=self._sources(path))
        self.assertEqual(result.status, "ok")
        self.assertEqual([s.kind for s in result.skipped], ["bad_timestamp"])

    async def test_unchanged_file_is_skipped_unless_forced(self) -> None:
        path = self._write(_recording())
        await ingest_file(path, self.db, sources=self._sources(path))

        second = await ingest_file(path, self.db, sources=self._sources(path))
        self.assertEqual(second.status, "unchanged")
        self.assertEqual(second.persistedCount, 2)
        self.assertTrue(second.succeeded)

        forced = await ingest_file(path, self.db, force=True, sources=self._sources(path))
        self.assertEqual(forced.status, "ok")

        state = await SqliteIngestStateRepository(self.db).get_state("abc123")
        self.assertEqual(state["file_path"], str(path))
        self.assertEqual(state["start_time"], "2025-01-01T00:00:00+08:00")
        self.assertEqual(state["persisted_count"], 2)

    async def test_changed_file_is_reingested(self) -> None:
        path = self._write(_recording())
        await ingest_file(path, self.db, sources=self._sources(path))

        path.write_text(_recording(events=_EVENTS[:3]), encoding="utf-8")
        result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.status, "ok")
        self.assertEqual(await self.messages.count_for_live("abc123"), 1)

    async def test_write_failure_is_reported_and_rolled_back(self) -> None:
        path = self._write(_recording())
        with mock.patch.object(
            SqliteMessageRepository, "purge",
            side_effect=aiosqlite.OperationalError("disk I/O error"),
        ):
            result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.status, "failed")
        self.assertIn("disk I/O error", result.error)
        self.assertIsNone(await self.senders.get(1))
        self.assertIsNone(await SqliteIngestStateRepository(self.db).get_state("abc123"))

    async def test_store_start_time_recorded_later_rewrites_unchanged_file(self) -> None:
        path = self._write(_recording())
        first = await ingest_file(path, self.db, sources=self._sources(path))
        self.assertEqual(first.startTimeSource, "ass_comment")

        await self.lives.record_start_time("abc123", datetime(2025, 3, 1, 20, 0, tzinfo=SHANGHAI))
        again = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(again.status, "ok")
        self.assertEqual(again.startTimeSource, "live_table")
        self.assertEqual((await self._contents())[0][1], "2025-03-01 12:00:01")

    async def test_other_file_for_same_live_invalidates_the_stamp(self) -> None:
        first = self._write(_recording(), name="a.ass")
        other_events = _EVENTS[:2] + ["Dialogue: 0,0:00:05.00,0:00:09.00,Danmu,Carol (3),0,0,0,,other"]
        second = self._write(_recording(events=other_events), name="b.ass")

        await ingest_file(first, self.db, sources=self._sources(first))
        await ingest_file(second, self.db, sources=self._sources(second))
        self.assertEqual([r[3] for r in await self._contents()], ["other"])

        result = await ingest_file(first, self.db, sources=self._sources(first))

        self.assertEqual(result.status, "ok")
        self.assertEqual([r[3] for r in await self._contents()], ["hello", "hi, there"])
        state = await SqliteIngestStateRepository(self.db).get_state("abc123")
        self.assertEqual(state["file_path"], str(first))

    async def test_state_write_failure_keeps_ok_status(self) -> None:
        path = self._write(_recording())
        with mock.patch.object(
            SqliteIngestStateRepository, "upsert_state",
            side_effect=aiosqlite.OperationalError("database is locked"),
        ):
            result = await ingest_file(path, self.db, sources=self._sources(path))

        self.assertEqual(result.status, "ok")
        self.assertEqual(result.persistedCount, 2)
        self.assertEqual(await self.messages.count_for_live("abc123"), 2)
        self.assertIsNone(await SqliteIngestStateRepository(self.db).get_state("abc123"))

    async def test_missing_file_raises(self) -> None:
        with self.assertRaises(OSError):
            await ingest_file(Path(self.tmpdir.name) / "missing.ass", self.db)
