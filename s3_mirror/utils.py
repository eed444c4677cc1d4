from __future__ import annotations
from typing import Any, Dict, Tuple
from pathlib import Path
import re
import yaml


def ensure_dir(path: Path | str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


_S3_URI_RE = re.compile(r"^s3://[a-zA-Z0-9.\-_/]+$")

def is_s3_uri(uri: str) -> bool:
    return bool(_S3_URI_RE.match(uri))


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    if not is_s3_uri(uri):
        raise ValueError(f"Invalid S3 URI: {uri}")
    rest = uri.replace("s3://", "", 1)
    if "/" not in rest:
        return rest, ""
    bucket, key = rest.split("/", 1)
    return bucket, key


def normalize_prefix(prefix: str, delimiter: str = "/") -> str:
    """'a/b' and 'a/b///' -> 'a/b/'; '' stays ''."""
    stripped = prefix.rstrip(delimiter)
    return f"{stripped}{delimiter}" if stripped else ""


def is_folder_marker(key: str, delimiter: str = "/") -> bool:
    return key.endswith(delimiter)


def human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    s = float(n)
    for u in units:
        if s < 1024 or u == units[-1]:
            return f"{s:.1f} {u}"
        s /= 1024.0
