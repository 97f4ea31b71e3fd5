"""
Data model for batch processing.

WorkItem tracks one URL through download -> transcribe -> analyze.
BatchResult aggregates every item of a batch and is what gets written
to the batch summary file.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ItemStatus(Enum):
    """Per-item pipeline status, in the order items move through it."""
    PENDING = "pending"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)


# =============================================================================
# REEL DATA
# =============================================================================

@dataclass
class ReelMetadata:
    """What the downloader knows about a fetched video."""
    url: str
    platform: str  # 'instagram', 'tiktok', 'youtube'
    video_id: str
    file_path: str
    title: Optional[str] = None
    author: Optional[str] = None
    duration: Optional[float] = None  # seconds
    downloaded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return to_jsonable(self)


@dataclass
class TranscriptSegment:
    start: float  # seconds
    end: float
    text: str


@dataclass
class Transcript:
    segments: list[TranscriptSegment] = field(default_factory=list)
    full_text: str = ""
    language: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> dict:
        return to_jsonable(self)


# =============================================================================
# BATCH STATE
# =============================================================================

@dataclass
class WorkItem:
    """One URL's progress through the pipeline."""
    url: str
    status: ItemStatus = ItemStatus.PENDING
    result: Optional[dict] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result_path: Optional[str] = None
    worker_id: Optional[int] = None

    def to_dict(self) -> dict:
        return to_jsonable(self)


@dataclass
class BatchResult:
    """Aggregate outcome of a batch run."""
    batch_id: str
    items: list[WorkItem]
    started_at: datetime
    successful: int = 0
    failed: int = 0
    completed_at: Optional[datetime] = None
    concurrency: int = 1
    worker_count: int = 0
    output_dir: Optional[str] = None
    summary_path: Optional[str] = None
    cancelled: bool = False

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def failed_items(self) -> list[WorkItem]:
        return [item for item in self.items if item.status == ItemStatus.FAILED]

    def to_dict(self) -> dict:
        return to_jsonable(self)


# =============================================================================
# SERIALIZATION
# =============================================================================

def to_jsonable(value: Any) -> Any:
    """
    Convert models (and anything a collaborator hands back) into plain
    JSON-safe structures: enums by value, datetimes as ISO strings.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
