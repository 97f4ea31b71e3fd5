"""
Batch worker pool.

Runs many URLs through download -> transcribe -> analyze with a fixed
number of worker threads:
- workers claim items from a shared, lock-guarded dispenser
- a failing item is recorded and never stops its siblings
- each completed item is written to disk as soon as it finishes
- a summary of the whole batch is written once every worker is done
"""

import json
import os
import re
import threading
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from .models import BatchResult, ItemStatus, WorkItem, to_jsonable
from .stages import PipelineStages
from utils.config import AppConfig
from utils.logger import LogLevel, get_logger
from utils.retry import RetryConfig, retry_operation

logger = get_logger()

CANCELLED_MESSAGE = "Cancelled before processing"


# =============================================================================
# ERRORS
# =============================================================================

class BatchError(Exception):
    """Base class for batch-level failures"""


class EmptyInputError(BatchError, ValueError):
    """No URLs to process"""


class BatchFileNotFoundError(BatchError, FileNotFoundError):
    """Batch URL file does not exist"""


class OutputDirectoryError(BatchError):
    """Output directory could not be created"""


class ResultSaveError(BatchError):
    """Per-item result file could not be written"""


# =============================================================================
# SHARED QUEUE
# =============================================================================

class ItemDispenser:
    """Hands out (index, item) pairs; each pair goes to exactly one caller."""

    def __init__(self, items: list[WorkItem]):
        self._items = items
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[tuple[int, WorkItem]]:
        with self._lock:
            if self._next >= len(self._items):
                return None
            index = self._next
            self._next += 1
        return index, self._items[index]

    def drain(self) -> list[tuple[int, WorkItem]]:
        """Claim everything still unclaimed at once."""
        with self._lock:
            start = self._next
            self._next = len(self._items)
        return [(i, self._items[i]) for i in range(start, len(self._items))]


# =============================================================================
# POOL
# =============================================================================

class BatchWorkerPool:
    """
    Fixed-size thread pool for a batch of reel URLs.

    Usage:
        pool = BatchWorkerPool(stages, concurrency=3, output_dir='output/batch-results')
        result = pool.run(urls)
    """

    def __init__(
        self,
        stages: PipelineStages,
        concurrency: int = 3,
        output_dir: str = 'output/batch-results',
        stage_retries: int = 0,
        retry_delay: float = 1.0,
        on_progress: Optional[Callable[[WorkItem, int], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        write_summary: bool = True
    ):
        """
        Args:
            stages: Collaborators for download/transcribe/analyze
            concurrency: Maximum number of items in flight
            output_dir: Where per-item results and the summary go
            stage_retries: Extra attempts per failing stage (0 = no retries)
            retry_delay: Initial backoff delay between stage attempts
            on_progress: Optional callback(item, index) on every status change
            cancel_event: When set, workers stop claiming new items
            write_summary: Write batch-summary-<ms>.json when the run ends
        """
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}")
        if stage_retries < 0:
            raise ValueError(f"stage_retries must be >= 0, got {stage_retries!r}")

        self.stages = stages
        self.concurrency = concurrency
        self.output_dir = Path(output_dir)
        self.stage_retries = stage_retries
        self.retry_delay = retry_delay
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.write_summary = write_summary

        self._count_lock = threading.Lock()
        self._result: Optional[BatchResult] = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(self, urls: Iterable[str]) -> BatchResult:
        """
        Process every URL and return the aggregate result.

        Raises:
            EmptyInputError: If urls is empty (nothing is written)
            OutputDirectoryError: If the output directory cannot be created
        """
        urls = list(urls)
        if not urls:
            raise EmptyInputError("No URLs to process: the URL list is empty")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(f"Cannot create output directory {self.output_dir}: {e}") from e

        items = [WorkItem(url=url) for url in urls]
        worker_count = min(self.concurrency, len(items))
        result = BatchResult(
            batch_id=f"batch_{uuid.uuid4().hex[:8]}",
            items=items,
            started_at=datetime.now(),
            concurrency=self.concurrency,
            worker_count=worker_count,
            output_dir=str(self.output_dir)
        )
        self._result = result

        logger.info(
            "BATCH",
            f"Starting batch {result.batch_id}: {len(items)} URLs "
            f"(concurrency {self.concurrency}, {worker_count} workers)"
        )

        dispenser = ItemDispenser(items)
        workers = [
            threading.Thread(
                target=self._worker,
                args=(worker_id, dispenser),
                name=f"batch-worker-{worker_id}",
                daemon=True
            )
            for worker_id in range(1, worker_count + 1)
        ]
        for worker in workers:
            worker.start()
        self._join_all(workers)

        unclaimed = dispenser.drain() if self.cancel_event.is_set() else []
        if unclaimed:
            result.cancelled = True
            for index, item in unclaimed:
                item.status = ItemStatus.FAILED
                item.error = CANCELLED_MESSAGE
                item.completed_at = datetime.now()
                with self._count_lock:
                    result.failed += 1
                self._notify(item, index)
                logger.item_event(result.batch_id, item.url, CANCELLED_MESSAGE, level=LogLevel.WARNING)
            logger.warning("BATCH", f"Batch {result.batch_id} cancelled: {len(unclaimed)} items never started")

        result.completed_at = datetime.now()
        if self.write_summary:
            self._save_summary(result)

        logger.info(
            "BATCH",
            f"Batch {result.batch_id} finished in {result.duration_seconds:.1f}s: "
            f"{result.successful} successful, {result.failed} failed"
        )
        return result

    def cancel(self):
        """Stop claiming new items; in-flight items finish normally."""
        self.cancel_event.set()

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _join_all(self, workers: list[threading.Thread]):
        """Join workers, turning Ctrl-C into a drain instead of an abort."""
        pending = list(workers)
        while pending:
            try:
                for worker in pending:
                    worker.join(timeout=0.2)
                pending = [w for w in pending if w.is_alive()]
            except KeyboardInterrupt:
                if self.cancel_event.is_set():
                    raise
                logger.warning("BATCH", "Interrupted: finishing in-flight items, no new items will start")
                self.cancel_event.set()

    def _worker(self, worker_id: int, dispenser: ItemDispenser):
        while not self.cancel_event.is_set():
            claimed = dispenser.claim()
            if claimed is None:
                break
            index, item = claimed
            self._process_item(worker_id, index, item)

        logger.debug("WORKER", f"Worker {worker_id} done")

    def _process_item(self, worker_id: int, index: int, item: WorkItem):
        """Run one item through every stage and record the outcome."""
        batch_id = self._result.batch_id
        item.worker_id = worker_id
        item.started_at = datetime.now()
        self._set_status(item, index, ItemStatus.DOWNLOADING)
        logger.item_event(batch_id, item.url, f"[Worker {worker_id}] Processing: {item.url}")

        try:
            metadata = self._run_stage("DOWNLOAD", self.stages.download, item.url)
            item.result = {'metadata': metadata}

            self._set_status(item, index, ItemStatus.TRANSCRIBING)
            video_path = _field(metadata, 'file_path')
            if self.stages.extract_audio is not None:
                audio_path = self._run_stage("TRANSCRIBE", self.stages.extract_audio, video_path)
            else:
                audio_path = video_path
            item.result['audio_path'] = audio_path

            transcript = self._run_stage("TRANSCRIBE", self.stages.transcribe, audio_path)
            item.result['transcript'] = transcript

            self._set_status(item, index, ItemStatus.ANALYZING)
            analysis = self._run_stage("ANALYZE", self.stages.analyze, transcript)
            item.result['analysis'] = analysis

            item.result_path = str(self._save_item_result(index, metadata, transcript, analysis))

        except Exception as e:
            stage = item.status.value
            message = str(e) or type(e).__name__
            item.error = message
            item.completed_at = datetime.now()
            with self._count_lock:
                self._result.failed += 1
            self._set_status(item, index, ItemStatus.FAILED)
            logger.item_event(
                batch_id, item.url, f"[Worker {worker_id}] Failed: {item.url} - {message}",
                {"stage": stage, "worker_id": worker_id},
                level=LogLevel.ERROR, exception=e
            )
            return

        item.completed_at = datetime.now()
        with self._count_lock:
            self._result.successful += 1
        self._set_status(item, index, ItemStatus.COMPLETED)
        elapsed = (item.completed_at - item.started_at).total_seconds()
        logger.item_event(batch_id, item.url, f"[Worker {worker_id}] Completed: {item.url} ({elapsed:.1f}s)")

    def _run_stage(self, category: str, stage: Callable, arg):
        if self.stage_retries <= 0:
            return stage(arg)
        return retry_operation(
            stage,
            arg,
            config=RetryConfig(max_attempts=self.stage_retries + 1, initial_delay=self.retry_delay),
            category=category
        )

    def _set_status(self, item: WorkItem, index: int, status: ItemStatus):
        item.status = status
        self._notify(item, index)

    def _notify(self, item: WorkItem, index: int):
        """Send progress notification if callback provided."""
        if self.on_progress:
            try:
                self.on_progress(item, index)
            except Exception as e:
                logger.item_event(
                    self._result.batch_id, item.url, f"Progress callback error: {e}", level=LogLevel.WARNING
                )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _save_item_result(self, index: int, metadata, transcript, analysis) -> Path:
        """Write analysis-<id>.json for one completed item."""
        path = self.output_dir / f"analysis-{resolve_item_id(metadata, index)}.json"
        payload = {
            'meta': to_jsonable(metadata),
            'transcript': to_jsonable(transcript),
            'analysis': to_jsonable(analysis)
        }
        try:
            write_json(path, payload)
        except (OSError, TypeError, ValueError) as e:
            raise ResultSaveError(f"Failed to save result: {e}") from e
        return path

    def _save_summary(self, result: BatchResult):
        path = self.output_dir / f"batch-summary-{int(time.time() * 1000)}.json"
        result.summary_path = str(path)
        try:
            write_json(path, result.to_dict())
        except (OSError, TypeError, ValueError) as e:
            result.summary_path = None
            logger.error("BATCH", f"Failed to write batch summary {path}", {
                "batch_id": result.batch_id
            }, exception=e)


# =============================================================================
# HELPERS
# =============================================================================

def _field(obj, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def resolve_item_id(metadata, index: int) -> str:
    """Filename-safe id for an item's result file."""
    video_id = _field(metadata, 'video_id')
    if video_id:
        safe = re.sub(r'[^\w.-]', '_', str(video_id)).strip('.')
        if safe:
            return safe
    return f"item-{index + 1}"


def write_json(path: Path, payload):
    """Write JSON atomically: a temp file next to path, then os.replace."""
    tmp_path = path.with_name(f".{path.name}.{threading.get_ident()}.tmp")
    try:
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def read_batch_file(file_path) -> list[str]:
    """
    Read newline-delimited URLs, skipping blank lines and '#' comments.

    Raises:
        BatchFileNotFoundError: If the file does not exist
    """
    path = Path(file_path)
    if not path.is_file():
        raise BatchFileNotFoundError(f"Batch file not found: {file_path}")

    urls = []
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if line and not line.startswith('#'):
            urls.append(line)
    return urls


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def process_batch(
    urls: Iterable[str],
    stages: PipelineStages,
    concurrency: Optional[int] = None,
    output_dir: Optional[str] = None,
    config: Optional[AppConfig] = None,
    on_progress: Optional[Callable[[WorkItem, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
    write_summary: bool = True
) -> BatchResult:
    """
    Process a list of URLs with bounded concurrency.

    Unset options fall back to the config (MAX_CONCURRENT_DOWNLOADS,
    OUTPUT_DIR/batch-results, STAGE_RETRIES).
    """
    config = config or AppConfig()
    pool = BatchWorkerPool(
        stages,
        concurrency=concurrency if concurrency is not None else config.max_concurrent_downloads,
        output_dir=output_dir or config.batch_output_dir,
        stage_retries=config.stage_retries,
        on_progress=on_progress,
        cancel_event=cancel_event,
        write_summary=write_summary
    )
    return pool.run(urls)


def process_batch_file(file_path, stages: PipelineStages, **kwargs) -> BatchResult:
    """Read URLs from a file and process them with process_batch()."""
    urls = read_batch_file(file_path)
    if not urls:
        raise EmptyInputError(f"No valid URLs found in file: {file_path}")
    return process_batch(urls, stages, **kwargs)
