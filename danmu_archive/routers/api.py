"""API routers for ingesting recordings and reading archived danmaku."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Query

from danmu_archive.db import connection
from danmu_archive.db.factory import get_message_repository, get_sender_registry
from danmu_archive.ingest import ingest_file
from danmu_archive.models import (
    DanmakuRow,
    IngestRequest,
    IngestResult,
    NameInterval,
    PaginatedResponse,
    SenderDetail,
)

logger = logging.getLogger("danmu.api")

ingest_router = APIRouter(prefix="/api/ingest", tags=["ingest"])
lives_router = APIRouter(prefix="/api/lives", tags=["lives"])
senders_router = APIRouter(prefix="/api/senders", tags=["senders"])


@ingest_router.post("", response_model=IngestResult)
async def ingest_recording(req: IngestRequest):
    """Ingest one finished recording from the server's filesystem."""
    path = Path(req.path).expanduser()
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"Recording not found: {req.path}")

    db = await connection.get_connection()
    try:
        return await ingest_file(path, db, force=req.force)
    except OSError as exc:
        logger.error("Cannot read recording %s: %s", path, exc)
        raise HTTPException(status_code=400, detail=f"Cannot read recording: {exc}") from exc


@lives_router.get("/{live_id}/danmaku", response_model=PaginatedResponse[DanmakuRow])
async def list_live_danmaku(
    live_id: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
):
    """Return archived danmaku of one live, ordered by offset."""
    db = await connection.get_connection()
    repo = get_message_repository(db)
    rows = await repo.list_for_live(live_id, offset=offset, limit=limit)
    total = await repo.count_for_live(live_id)
    items = [
        DanmakuRow(
            id=r["id"],
            liveId=r["live_id"],
            startTime=r["start_time"],
            sendTime=str(r["send_time"]),
            uid=r["uid"],
            content=r["content"],
        )
        for r in rows
    ]
    return PaginatedResponse(items=items, total=total, offset=offset, limit=limit)


@senders_router.get("/{uid}", response_model=SenderDetail)
async def get_sender(uid: int):
    db = await connection.get_connection()
    sender = await get_sender_registry(db).get(uid)
    if not sender:
        raise HTTPException(status_code=404, detail=f"Sender {uid} not found")
    return SenderDetail(
        uid=sender["uid"],
        name=sender["name"],
        formerNames=sender["former_names"],
        history=[
            NameInterval(name=h["name"], startDate=h["start_date"], endDate=h["end_date"])
            for h in sender["history"]
        ],
    )
