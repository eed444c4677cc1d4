from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List
import logging

from .config import MirrorConfig
from .core import list_all_keys, list_common_prefixes
from .utils import is_folder_marker

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferItem:
    remote_key: str
    local_path: Path


def local_path_for(remote_key: str, base_prefix: str, local_root: Path | str, delimiter: str = "/") -> Path:
    """
    Map a remote key to its mirror path: strip `base_prefix`, join the rest onto `local_root`.

    `base/a/b/c.json` with base `base/` and root `out` -> Path("out", "a", "b", "c.json"),
    whatever the platform separator is. Keys that could escape `local_root` or
    collide with another key's path are rejected.
    """
    if not remote_key.startswith(base_prefix):
        raise ValueError(f"key {remote_key!r} is outside base prefix {base_prefix!r}")
    if is_folder_marker(remote_key, delimiter):
        raise ValueError(f"key {remote_key!r} is a folder marker")
    parts = remote_key[len(base_prefix):].split(delimiter)
    if any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"key {remote_key!r} has an empty, '.' or '..' path segment")
    return Path(local_root).joinpath(*parts)


class Planner:
    """Enumerates (remote key -> local path) pairs for a scan target."""

    def __init__(self, s3_client, config: MirrorConfig):
        self.s3 = s3_client
        self.config = config

    def _item(self, key: str) -> TransferItem | None:
        cfg = self.config
        try:
            return TransferItem(key, local_path_for(key, cfg.base_prefix, cfg.local_root, cfg.delimiter))
        except ValueError as e:
            log.warning("Not planning %s: %s", key, e)
            return None

    def subfolders(self, scan_target: str) -> List[str]:
        cfg = self.config
        found = list_common_prefixes(
            self.s3,
            cfg.bucket,
            cfg.target_prefix(scan_target),
            delimiter=cfg.delimiter,
            page_size=cfg.page_size,
        )
        return sorted(found)

    def items_for_subfolder(self, subfolder: str) -> Iterator[TransferItem]:
        cfg = self.config
        # specific files are planned blind; a missing object fails at fetch time
        for name in cfg.specific_files:
            item = self._item(f"{subfolder}{name}")
            if item:
                yield item

        for child in cfg.child_subfolders:
            prefix = f"{subfolder}{child}"
            found = 0
            for key in list_all_keys(self.s3, cfg.bucket, prefix, page_size=cfg.page_size):
                if is_folder_marker(key, cfg.delimiter):
                    continue
                item = self._item(key)
                if item:
                    found += 1
                    yield item
            log.debug("Planned %d object(s) under %s", found, prefix)

    def plan(self, scan_target: str) -> Iterator[TransferItem]:
        for subfolder in self.subfolders(scan_target):
            yield from self.items_for_subfolder(subfolder)
