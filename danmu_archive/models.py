"""Pydantic models for ingest outcomes and the read API."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional, Generic, TypeVar

T = TypeVar("T")

class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int
# ── Ingest outcome ──────────────────────────────────────────────────

class SkipReason(BaseModel):
    lineNumber: int = 0  # 0 when the skip is not tied to a source line
    kind: str  # "malformed_event" | "bad_timestamp" | "sender_failed" | "insert_failed"
    detail: str = ""


class IngestResult(BaseModel):
    sourceFile: str
    liveId: str = ""
    status: str = "pending"  # "ok" | "unchanged" | "no_live_id" | "no_records" | "no_start_time" | "failed"
    parsedCount: int = 0
    anonymousCount: int = 0
    persistedCount: int = 0
    failedCount: int = 0
    sendersCreated: int = 0
    sendersRenamed: int = 0
    startTime: Optional[str] = None
    startTimeSource: str = ""
    skipped: list[SkipReason] = Field(default_factory=list)
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in {"ok", "unchanged"}


# ── Read API ────────────────────────────────────────────────────────

class DanmakuRow(BaseModel):
    id: int
    liveId: str
    startTime: float
    sendTime: str
    uid: int
    content: str


class NameInterval(BaseModel):
    name: str
    startDate: str
    endDate: Optional[str] = None


class SenderDetail(BaseModel):
    uid: int
    name: str
    formerNames: list[str] = Field(default_factory=list)
    history: list[NameInterval] = Field(default_factory=list)


class IngestRequest(BaseModel):
    path: str = Field(..., min_length=1)
    force: bool = False
