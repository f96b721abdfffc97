"""
Per-view progress reporting for batch depth refinement

Workers publish status changes onto a queue; a single aggregator thread owns
the status table and periodically logs "<completed> of <total> completed"
whenever the completed count changed.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Hashable, Iterable, Optional

class ViewStatus(Enum):
    """Processing state of a single view."""
    IGNORED = 'ignored'
    QUEUED = 'queued'
    IN_PROGRESS = 'in_progress'
    DONE = 'done'
    FAILED = 'failed'

    @property
    def is_completed(self) -> bool:
        return self in (ViewStatus.IGNORED, ViewStatus.DONE, ViewStatus.FAILED)


@dataclass(frozen=True)
class ProgressSummary:
    completed: int = 0
    queued: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.queued

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return 100.0 * self.completed / self.total

    def format(self) -> str:
        return f"{self.completed} of {self.total} completed ({self.percent:.2f}%)"


def summarize(statuses: Iterable[ViewStatus]) -> ProgressSummary:
    """Count completed (ignored, done, failed) versus queued (queued, in progress) views."""
    completed = 0
    queued = 0
    for status in statuses:
        if status.is_completed:
            completed += 1
        else:
            queued += 1
    return ProgressSummary(completed=completed, queued=queued)


class ProgressPrinter:
    """
    Aggregates per-view status updates and reports overall progress.

    Status updates are messages: `publish` only enqueues, and the status table
    is touched exclusively by the aggregator (the background thread while it
    runs, `stop` afterwards). `summary` returns the last aggregated snapshot.
    """

    def __init__(self,
                 view_ids: Iterable[Hashable] = (),
                 interval: float = 2.0,
                 logs_dir: Optional[Path] = None,
                 log_level: int = logging.INFO):
        """
        Args:
            view_ids: Views to track, initially queued
            interval: Seconds between progress reports
            logs_dir: Optional directory for a progress log file
            log_level: Level for the progress logger and its handlers
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.interval = interval
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.logger = self._setup_logging(log_level)

        self._updates = queue.Queue()
        self._statuses = {view_id: ViewStatus.QUEUED for view_id in view_ids}
        self._summary = summarize(self._statuses.values())
        self._last_completed = -1

        self._stop_event = threading.Event()
        self._thread = None

    def publish(self, view_id: Hashable, status: ViewStatus):
        """Report a status change for a view. Safe to call from any thread."""
        if not isinstance(status, ViewStatus):
            raise ValueError(f"status must be a ViewStatus, got {status!r}")
        self._updates.put((view_id, status))

    def summary(self) -> ProgressSummary:
        return self._summary

    def poll(self) -> Optional[str]:
        """
        Apply pending updates and log a progress line if the completed count changed.

        Only the aggregator calls this: the background thread while running,
        otherwise the owner of the printer.

        Returns:
            The logged line, or None if nothing was logged
        """
        while True:
            try:
                view_id, status = self._updates.get_nowait()
            except queue.Empty:
                break
            self._statuses[view_id] = status

        self._summary = summarize(self._statuses.values())
        if self._summary.completed == self._last_completed:
            return None

        line = self._summary.format()
        self.logger.info(line)
        self._last_completed = self._summary.completed
        return line

    def start(self):
        """Start the reporting thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='ProgressPrinter', daemon=True)
        self._thread.start()

    def stop(self) -> ProgressSummary:
        """Stop the reporting thread, flush remaining updates and return the final summary."""
        if self._thread is not None:
            self._stop_event.set()
            self._thread.join()
            self._thread = None
        self.poll()
        return self._summary

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _run(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.poll()
            except Exception as e:
                self.logger.error(f"Error in progress loop: {e}")

    def _setup_logging(self, level: int) -> logging.Logger:
        """
        Setup logging for progress reports.

        The logger does not propagate, so a root handler (e.g. from basicConfig)
        does not repeat every line. Each logs directory gets its own file handler,
        also when an earlier printer already configured the console.
        """
        logger = logging.getLogger('ProgressPrinter')
        logger.setLevel(level)
        logger.propagate = False

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        console_handlers = [h for h in logger.handlers
                            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)]
        if not console_handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)
            console_handlers = [console_handler]
        for handler in console_handlers:
            handler.setLevel(level)

        if self.logs_dir is not None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            log_dir = self.logs_dir.resolve()
            file_handlers = [h for h in logger.handlers
                             if isinstance(h, logging.FileHandler) and Path(h.baseFilename).parent == log_dir]
            if not file_handlers:
                log_file = log_dir / f"progress_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
                file_handlers = [file_handler]
            for handler in file_handlers:
                handler.setLevel(level)

        return logger
