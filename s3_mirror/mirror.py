from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Optional
import logging

from .config import ABORT_RUN, MirrorConfig
from .download import TransferOutcome, TransferResult, fetch
from .errors import ListError
from .planner import Planner, TransferItem

log = logging.getLogger(__name__)


@dataclass
class RunStatistics:
    folders_processed: int = 0
    subfolders_scanned: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    targets_failed: int = 0
    bytes_downloaded: int = 0
    planned: int = 0

    @property
    def total(self) -> int:
        return self.downloaded + self.skipped + self.failed

    def record(self, result: TransferResult) -> None:
        if result.outcome is TransferOutcome.DOWNLOADED:
            self.downloaded += 1
            self.bytes_downloaded += result.bytes_written
        elif result.outcome is TransferOutcome.SKIPPED:
            self.skipped += 1
        elif result.outcome is TransferOutcome.FAILED:
            self.failed += 1
        else:
            raise ValueError(f"unknown outcome: {result.outcome!r}")

    def as_dict(self) -> Dict[str, int]:
        d = asdict(self)
        d["total"] = self.total
        return d


class Reporter:
    """Receives run events. The default implementation ignores all of them."""

    def target_started(self, target: str, prefix: str) -> None: ...
    def target_empty(self, target: str, prefix: str) -> None: ...
    def target_failed(self, target: str, error: ListError) -> None: ...
    def target_finished(self, target: str) -> None: ...
    def subfolder_started(self, subfolder: str) -> None: ...
    def planned(self, item: TransferItem) -> None: ...
    def outcome(self, result: TransferResult) -> None: ...
    def finished(self, stats: RunStatistics) -> None: ...
    def aborted(self, stats: RunStatistics, error: ListError) -> None: ...


def _process_target(
    s3_client,
    config: MirrorConfig,
    planner: Planner,
    target: str,
    stats: RunStatistics,
    reporter: Reporter,
    dry_run: bool,
) -> None:
    prefix = config.target_prefix(target)
    reporter.target_started(target, prefix)

    subfolders = planner.subfolders(target)
    if not subfolders:
        reporter.target_empty(target, prefix)
        if config.count_empty_targets:
            stats.folders_processed += 1
        return

    for subfolder in subfolders:
        stats.subfolders_scanned += 1
        reporter.subfolder_started(subfolder)
        for item in planner.items_for_subfolder(subfolder):
            stats.planned += 1
            if dry_run:
                reporter.planned(item)
                continue
            result = fetch(
                s3_client,
                config.bucket,
                item,
                atomic=config.atomic_writes,
                chunk_size=config.chunk_size,
            )
            stats.record(result)
            reporter.outcome(result)

    stats.folders_processed += 1
    reporter.target_finished(target)


def run_mirror(
    s3_client,
    config: MirrorConfig,
    reporter: Optional[Reporter] = None,
    dry_run: bool = False,
) -> RunStatistics:
    """
    Mirror every configured scan target, one object at a time.

    Fetch failures are counted and never raised. A ListError either aborts the
    run (reported through `reporter.aborted`, then re-raised) or only the
    current target, per `config.on_list_error`.
    """
    reporter = reporter or Reporter()
    planner = Planner(s3_client, config)
    stats = RunStatistics()

    for target in config.scan_targets:
        try:
            _process_target(s3_client, config, planner, target, stats, reporter, dry_run)
        except ListError as e:
            if config.on_list_error == ABORT_RUN:
                reporter.aborted(stats, e)
                raise
            log.error("Target %s aborted: %s", target, e)
            stats.targets_failed += 1
            reporter.target_failed(target, e)

    reporter.finished(stats)
    return stats
