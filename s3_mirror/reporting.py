from __future__ import annotations
from csv import DictWriter
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from tqdm import tqdm

from .download import TransferOutcome, TransferResult
from .errors import ListError
from .mirror import Reporter, RunStatistics
from .planner import TransferItem
from .utils import ensure_dir, human_bytes


class LoggingReporter(Reporter):
    """
    Human-facing side of a run: log lines per target and object, an optional
    tqdm bar counting processed objects, a summary, and an optional CSV manifest.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        progress: bool = False,
        manifest_path: Optional[str | Path] = None,
        local_root: Optional[Path] = None,
    ):
        self.log = logger or logging.getLogger("s3_mirror.report")
        self.progress = progress
        self.manifest_path = Path(manifest_path) if manifest_path else None
        self.local_root = local_root
        self.rows: List[Tuple[str, str, str]] = []
        self._bar: Optional[tqdm] = None

    def _row(self, item: TransferItem, outcome: str) -> None:
        if self.manifest_path:
            self.rows.append((item.remote_key, str(item.local_path), outcome))

    def _tick(self) -> None:
        if not self.progress:
            return
        if self._bar is None:
            self._bar = tqdm(desc="Mirror", unit="obj")
        self._bar.update(1)

    def target_started(self, target: str, prefix: str) -> None:
        self.log.info("Processing scan target %s (%s)", target.rstrip("/"), prefix)

    def target_empty(self, target: str, prefix: str) -> None:
        self.log.warning("No subfolders found in %s", prefix)

    def target_failed(self, target: str, error: ListError) -> None:
        self.log.error("Scan target %s skipped: %s", target.rstrip("/"), error)

    def target_finished(self, target: str) -> None:
        self.log.info("Scan target %s completed", target.rstrip("/"))

    def subfolder_started(self, subfolder: str) -> None:
        self.log.info("Subfolder %s", subfolder)

    def planned(self, item: TransferItem) -> None:
        self.log.info("[PLAN] %s -> %s", item.remote_key, item.local_path)
        self._row(item, "planned")
        self._tick()

    def outcome(self, result: TransferResult) -> None:
        key = result.item.remote_key
        if result.outcome is TransferOutcome.DOWNLOADED:
            self.log.info("Downloaded: %s (%s)", key, human_bytes(result.bytes_written))
        elif result.outcome is TransferOutcome.SKIPPED:
            self.log.info("Skipped (already exists): %s", key)
        else:
            self.log.error("Error: %s", result.error)
        self._row(result.item, result.outcome.value)
        self._tick()

    def _close_bar(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def aborted(self, stats: RunStatistics, error: ListError) -> None:
        self._close_bar()
        self.log.error(
            "Run aborted after Downloaded=%d Skipped=%d Failed=%d: %s",
            stats.downloaded,
            stats.skipped,
            stats.failed,
            error,
        )
        if self.manifest_path:
            self.write_manifest(self.manifest_path)

    def finished(self, stats: RunStatistics) -> None:
        self._close_bar()
        self.log.info(
            "Done. Folders=%d Subfolders=%d Downloaded=%d Skipped=%d Failed=%d Total=%d Bytes=%s",
            stats.folders_processed,
            stats.subfolders_scanned,
            stats.downloaded,
            stats.skipped,
            stats.failed,
            stats.total,
            human_bytes(stats.bytes_downloaded),
        )
        if stats.targets_failed:
            self.log.warning("Scan targets aborted by listing errors: %d", stats.targets_failed)
        if self.local_root is not None:
            self.log.info("Download location: %s", self.local_root.resolve())
        if self.manifest_path:
            self.write_manifest(self.manifest_path)

    def write_manifest(self, path: Path) -> None:
        ensure_dir(path.parent)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = DictWriter(f, fieldnames=["key", "local_path", "outcome"])
            w.writeheader()
            for k, p, o in self.rows:
                w.writerow({"key": k, "local_path": p, "outcome": o})
