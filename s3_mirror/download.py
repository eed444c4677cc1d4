from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional
import logging
import os
import tempfile

from .config import DEFAULT_CHUNK_SIZE
from .errors import FetchError
from .planner import TransferItem
from .utils import ensure_dir

log = logging.getLogger(__name__)

PART_SUFFIX = ".part"


class TransferOutcome(str, Enum):
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferResult:
    item: TransferItem
    outcome: TransferOutcome
    error: Optional[FetchError] = None
    bytes_written: int = 0


def _copy_body(body, f, chunk_size: int) -> int:
    written = 0
    for chunk in body.iter_chunks(chunk_size):
        f.write(chunk)
        written += len(chunk)
    return written


def download_object(
    s3_client,
    bucket: str,
    key: str,
    dst_path: str | Path,
    atomic: bool = True,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Stream s3://bucket/key to dst_path without holding the body in memory.

    With `atomic`, bytes go to a fresh `.<name>.XXXX.part` file beside dst,
    created exclusively so it never takes an existing path, and are renamed
    into place only once the stream is complete. Returns the number of bytes written.
    """
    dst = Path(dst_path)
    resp = s3_client.get_object(Bucket=bucket, Key=key)
    body = resp["Body"]
    ensure_dir(dst.parent)
    try:
        if not atomic:
            with open(dst, "xb") as f:
                return _copy_body(body, f, chunk_size)
        fd, tmp = tempfile.mkstemp(dir=dst.parent, prefix=f".{dst.name}.", suffix=PART_SUFFIX)
        part = Path(tmp)
        try:
            with os.fdopen(fd, "wb") as f:
                written = _copy_body(body, f, chunk_size)
            os.replace(part, dst)
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        return written
    finally:
        body.close()


def fetch(
    s3_client,
    bucket: str,
    item: TransferItem,
    atomic: bool = True,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> TransferResult:
    """
    Download one planned item unless its local path already exists.

    Presence is the only check: an existing path is SKIPPED without a remote
    call. Every error is logged and returned as FAILED, never raised.
    """
    dst = item.local_path
    if os.path.lexists(dst):
        log.debug("Skipped (already exists): %s", item.remote_key)
        return TransferResult(item, TransferOutcome.SKIPPED)

    try:
        written = download_object(s3_client, bucket, item.remote_key, dst, atomic=atomic, chunk_size=chunk_size)
    except Exception as e:
        err = FetchError(item.remote_key, e)
        log.error("Failed: %s", err)
        return TransferResult(item, TransferOutcome.FAILED, error=err)

    log.debug("Downloaded: %s -> %s (%d bytes)", item.remote_key, dst, written)
    return TransferResult(item, TransferOutcome.DOWNLOADED, bytes_written=written)
