import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import aiosqlite

from danmu_archive.db.repositories.lives import SqliteLiveRepository, epoch_ms_to_datetime
from danmu_archive.db.sqlite_migrations import run_migrations
from danmu_archive.live_start import (
    ERROR,
    FOUND,
    NOT_FOUND,
    AssCommentStartTime,
    LiveTableStartTime,
    StartTimeLookup,
    StartTimeUnresolved,
    parse_live_start_time,
    resolve_start_time,
)

SHANGHAI = ZoneInfo("Asia/Shanghai")


class _StaticSource:
    def __init__(self, name: str, outcome: StartTimeLookup):
        self.name = name
        self.outcome = outcome
        self.calls = 0

    async def lookup(self) -> StartTimeLookup:
        self.calls += 1
        return self.outcome


class _BrokenRepo:
    async def get_start_time(self, live_id):
        raise RuntimeError("no such table: acfunlive")


class ParseLiveStartTimeTests(unittest.TestCase):
    def test_with_and_without_fraction(self) -> None:
        self.assertEqual(
            parse_live_start_time("2025-01-01 08:00:00.123", SHANGHAI),
            datetime(2025, 1, 1, 8, 0, 0, 123000, tzinfo=SHANGHAI),
        )
        self.assertEqual(
            parse_live_start_time(" 2025-01-01 08:00:00 ", SHANGHAI),
            datetime(2025, 1, 1, 8, 0, 0, tzinfo=SHANGHAI),
        )

    def test_value_is_already_in_target_timezone(self) -> None:
        value = parse_live_start_time("2025-01-01 08:00:00", SHANGHAI)
        self.assertEqual(value.astimezone(timezone.utc), datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc))

    def test_rejects_other_formats(self) -> None:
        for raw in ("2025/01/01 08:00:00", "2025-01-01T08:00:00", "yesterday"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    parse_live_start_time(raw, SHANGHAI)


class EpochConversionTests(unittest.TestCase):
    def test_epoch_ms_is_converted_to_civil_timezone(self) -> None:
        value = epoch_ms_to_datetime(1735689600123, SHANGHAI)
        self.assertEqual(value, datetime(2025, 1, 1, 8, 0, 0, 123000, tzinfo=SHANGHAI))
        self.assertEqual(value.utcoffset().total_seconds(), 8 * 3600)


class AssCommentSourceTests(unittest.IsolatedAsyncioTestCase):
    def _write(self, lines: list[str]) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "live.ass"
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    async def test_found_near_top(self) -> None:
        path = self._write(["[Script Info]", "; LiveID: abc", "; LiveStartTime: 2025-01-01 00:00:00.000"])
        outcome = await AssCommentStartTime(path, tz=SHANGHAI).lookup()
        self.assertEqual(outcome.status, FOUND)
        self.assertEqual(outcome.value, datetime(2025, 1, 1, tzinfo=SHANGHAI))

    async def test_scan_is_limited_to_first_lines(self) -> None:
        filler = [f"; filler {i}" for i in range(60)]
        path = self._write(["[Script Info]"] + filler + ["; LiveStartTime: 2025-01-01 00:00:00"])
        outcome = await AssCommentStartTime(path, tz=SHANGHAI, max_lines=50).lookup()
        self.assertEqual(outcome.status, NOT_FOUND)

    async def test_unparseable_value_is_error(self) -> None:
        path = self._write(["[Script Info]", "; LiveStartTime: soon"])
        outcome = await AssCommentStartTime(path, tz=SHANGHAI).lookup()
        self.assertEqual(outcome.status, ERROR)
        self.assertIsNone(outcome.value)


class LiveTableSourceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.repo = SqliteLiveRepository(self.db, tz=SHANGHAI)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_not_found(self) -> None:
        outcome = await LiveTableStartTime(self.repo, "missing").lookup()
        self.assertEqual(outcome.status, NOT_FOUND)

    async def test_found_round_trips_through_epoch_ms(self) -> None:
        start = datetime(2025, 1, 1, 20, 30, 15, 250000, tzinfo=SHANGHAI)
        await self.repo.record_start_time("abc", start)
        outcome = await LiveTableStartTime(self.repo, "abc").lookup()
        self.assertEqual(outcome.status, FOUND)
        self.assertEqual(outcome.value, start)

    async def test_lookup_failure_is_reported_not_raised(self) -> None:
        outcome = await LiveTableStartTime(_BrokenRepo(), "abc").lookup()
        self.assertEqual(outcome.status, ERROR)
        self.assertIn("acfunlive", outcome.detail)


class ResolveStartTimeTests(unittest.IsolatedAsyncioTestCase):
    async def test_first_found_wins_and_later_sources_are_not_asked(self) -> None:
        store_value = datetime(2025, 1, 1, tzinfo=SHANGHAI)
        store = _StaticSource("store", StartTimeLookup("store", FOUND, value=store_value))
        comment = _StaticSource(
            "comment",
            StartTimeLookup("comment", FOUND, value=datetime(2030, 1, 1, tzinfo=SHANGHAI)),
        )
        outcome = await resolve_start_time("abc", [store, comment])
        self.assertEqual(outcome.value, store_value)
        self.assertEqual(outcome.source, "store")
        self.assertEqual(comment.calls, 0)

    async def test_falls_through_not_found_and_error(self) -> None:
        comment_value = datetime(2025, 6, 1, tzinfo=SHANGHAI)
        sources = [
            _StaticSource("store", StartTimeLookup("store", NOT_FOUND)),
            _StaticSource("broken", StartTimeLookup("broken", ERROR, detail="boom")),
            _StaticSource("comment", StartTimeLookup("comment", FOUND, value=comment_value)),
        ]
        outcome = await resolve_start_time("abc", sources)
        self.assertEqual(outcome.source, "comment")
        self.assertEqual(outcome.value, comment_value)

    async def test_unresolved_carries_every_attempt(self) -> None:
        sources = [
            _StaticSource("store", StartTimeLookup("store", NOT_FOUND)),
            _StaticSource("comment", StartTimeLookup("comment", NOT_FOUND)),
        ]
        with self.assertRaises(StartTimeUnresolved) as ctx:
            await resolve_start_time("abc", sources)
        self.assertEqual(ctx.exception.live_id, "abc")
        self.assertEqual([a.source for a in ctx.exception.attempts], ["store", "comment"])
        self.assertIn("store=not_found", str(ctx.exception))
