import csv
import logging
from pathlib import Path

from s3_mirror.download import TransferOutcome, TransferResult
from s3_mirror.errors import FetchError, ListError
from s3_mirror.mirror import RunStatistics
from s3_mirror.planner import TransferItem
from s3_mirror.reporting import LoggingReporter


def _result(outcome, key="base/t/rec/a.jpg", **kw):
    return TransferResult(TransferItem(key, Path("out", "t", "rec", "a.jpg")), outcome, **kw)


def test_outcomes_logged(caplog):
    reporter = LoggingReporter()

    with caplog.at_level(logging.INFO, logger="s3_mirror.report"):
        reporter.outcome(_result(TransferOutcome.DOWNLOADED, bytes_written=2048))
        reporter.outcome(_result(TransferOutcome.SKIPPED))
        reporter.outcome(_result(TransferOutcome.FAILED, error=FetchError("base/t/rec/a.jpg", OSError("disk full"))))

    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "Downloaded: base/t/rec/a.jpg (2.0 KB)"
    assert messages[1] == "Skipped (already exists): base/t/rec/a.jpg"
    assert "disk full" in messages[2]
    assert caplog.records[2].levelno == logging.ERROR


def test_summary_and_manifest(tmp_path, caplog):
    manifest = tmp_path / "m" / "manifest.csv"
    reporter = LoggingReporter(manifest_path=manifest)
    reporter.outcome(_result(TransferOutcome.DOWNLOADED, bytes_written=1))
    reporter.outcome(_result(TransferOutcome.SKIPPED, key="base/t/rec/b.jpg"))
    stats = RunStatistics(folders_processed=1, subfolders_scanned=1, downloaded=1, skipped=1, bytes_downloaded=1)

    with caplog.at_level(logging.INFO, logger="s3_mirror.report"):
        reporter.finished(stats)

    assert "Downloaded=1 Skipped=1 Failed=0 Total=2" in caplog.text
    with open(manifest, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [(r["key"], r["outcome"]) for r in rows] == [
        ("base/t/rec/a.jpg", "downloaded"),
        ("base/t/rec/b.jpg", "skipped"),
    ]


def test_progress_bar_closed_on_finish():
    reporter = LoggingReporter(progress=True)
    reporter.outcome(_result(TransferOutcome.SKIPPED))
    assert reporter._bar is not None and reporter._bar.n == 1

    reporter.finished(RunStatistics(skipped=1))

    assert reporter._bar is None


def test_rows_kept_only_for_manifest():
    reporter = LoggingReporter()

    reporter.outcome(_result(TransferOutcome.DOWNLOADED, bytes_written=1))
    reporter.planned(TransferItem("base/t/rec/b.jpg", Path("out", "t", "rec", "b.jpg")))

    assert reporter.rows == []


def test_aborted_closes_bar_and_writes_manifest(tmp_path, caplog):
    manifest = tmp_path / "manifest.csv"
    reporter = LoggingReporter(progress=True, manifest_path=manifest)
    reporter.outcome(_result(TransferOutcome.DOWNLOADED, bytes_written=1))
    error = ListError("base/t/", OSError("connection lost"))

    with caplog.at_level(logging.ERROR, logger="s3_mirror.report"):
        reporter.aborted(RunStatistics(downloaded=1), error)

    assert reporter._bar is None
    assert "Run aborted after Downloaded=1" in caplog.text
    with open(manifest, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [(r["key"], r["outcome"]) for r in rows] == [("base/t/rec/a.jpg", "downloaded")]
