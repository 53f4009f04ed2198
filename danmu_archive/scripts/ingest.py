#!/usr/bin/env python3
"""Ingest ASS live-chat recordings into the configured database.

Usage:
  python -m danmu_archive.scripts.ingest recording.ass
  python -m danmu_archive.scripts.ingest recordings/*.ass --force
  python -m danmu_archive.scripts.ingest recording.ass --json
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from danmu_archive.db import connection, migrations
from danmu_archive.ingest import ingest_file
from danmu_archive.models import IngestResult


def _summary(result: IngestResult) -> str:
    line = (
        f"{result.sourceFile}: {result.status} liveId={result.liveId or '-'} "
        f"parsed={result.parsedCount} persisted={result.persistedCount} "
        f"skipped={len(result.skipped)}"
    )
    if result.startTimeSource:
        line += f" start={result.startTime} ({result.startTimeSource})"
    if result.error:
        line += f" error={result.error}"
    return line


async def _run(paths: list[Path], force: bool, as_json: bool) -> int:
    db = await connection.get_connection()
    exit_code = 0
    results: list[IngestResult] = []
    try:
        await migrations.run_migrations(db)
        for path in paths:
            try:
                result = await ingest_file(path, db, force=force)
            except OSError as exc:
                result = IngestResult(sourceFile=str(path), status="failed", error=str(exc))
            results.append(result)
            if not result.succeeded:
                exit_code = 1
    finally:
        await connection.close_connection()

    if as_json:
        print(json.dumps([r.model_dump() for r in results], ensure_ascii=False, indent=2))
    else:
        for result in results:
            print(_summary(result))
    return exit_code


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("paths", nargs="+", type=Path, help="ASS recording files")
    parser.add_argument("--force", action="store_true", help="Re-ingest files that did not change")
    parser.add_argument("--json", action="store_true", help="Print structured results as JSON")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    return asyncio.run(_run(args.paths, args.force, args.json))


if __name__ == "__main__":
    raise SystemExit(main())
