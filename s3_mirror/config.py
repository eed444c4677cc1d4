from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import ConfigError, log_and_reraise
from .utils import normalize_prefix, parse_s3_uri, read_yaml

DEFAULT_CONFIG = "config/config.yaml"

ABORT_RUN = "abort-run"
ABORT_TARGET = "abort-target"
LIST_ERROR_POLICIES = (ABORT_RUN, ABORT_TARGET)

DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class AwsSettings:
    profile: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    retries_max_attempts: int = 8
    retries_mode: str = "standard"
    connect_timeout: int = 10
    read_timeout: int = 60

    @classmethod
    def from_mapping(cls, aws: Mapping[str, Any]) -> "AwsSettings":
        return cls(
            profile=aws.get("profile"),
            region=aws.get("region"),
            access_key_id=aws.get("access_key_id"),
            secret_access_key=aws.get("secret_access_key"),
            retries_max_attempts=int(aws.get("retries_max_attempts", 8)),
            retries_mode=aws.get("retries_mode", "standard"),
            connect_timeout=int(aws.get("connect_timeout", 10)),
            read_timeout=int(aws.get("read_timeout", 60)),
        )


@dataclass(frozen=True)
class MirrorConfig:
    """
    Everything one mirror run needs, resolved and validated once.

    Prefixes are stored normalised: `base_prefix` and each scan target end in
    exactly one delimiter, child subfolder names too; specific files never do.
    """
    bucket: str
    base_prefix: str
    local_root: Path
    scan_targets: Tuple[str, ...]
    child_subfolders: Tuple[str, ...] = ()
    specific_files: Tuple[str, ...] = ()
    delimiter: str = "/"
    on_list_error: str = ABORT_RUN
    count_empty_targets: bool = False
    atomic_writes: bool = True
    page_size: Optional[int] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    aws: AwsSettings = field(default_factory=AwsSettings)

    @classmethod
    @log_and_reraise(ConfigError)
    def from_mapping(cls, mirror: Mapping[str, Any], aws: Optional[Mapping[str, Any]] = None) -> "MirrorConfig":
        source = mirror.get("source")
        if source:
            try:
                bucket, base = parse_s3_uri(source)
            except ValueError as e:
                raise ConfigError(str(e)) from e
        else:
            bucket, base = mirror.get("bucket"), mirror.get("base_prefix", "")
        if not bucket:
            raise ConfigError("bucket is required (set mirror.bucket or mirror.source)")

        delimiter = mirror.get("delimiter", "/")
        if not delimiter:
            raise ConfigError("delimiter must not be empty")

        base = base or ""
        if base.startswith(delimiter):
            raise ConfigError(f"base_prefix must not start with {delimiter!r}: {base!r}")

        policy = str(mirror.get("on_list_error", ABORT_RUN)).lower()
        if policy not in LIST_ERROR_POLICIES:
            raise ConfigError(f"on_list_error must be one of {LIST_ERROR_POLICIES}, got {policy!r}")

        page_size = mirror.get("page_size")
        if page_size is not None and int(page_size) <= 0:
            raise ConfigError("page_size must be > 0")
        chunk_size = int(mirror.get("chunk_size", DEFAULT_CHUNK_SIZE))
        if chunk_size <= 0:
            raise ConfigError("chunk_size must be > 0")

        targets = tuple(_prefixes(mirror.get("scan_targets"), delimiter, "scan target"))
        if not targets:
            raise ConfigError("at least one scan target is required")

        return cls(
            bucket=bucket,
            base_prefix=normalize_prefix(base, delimiter),
            local_root=Path(mirror.get("local_root", "./downloads")),
            scan_targets=targets,
            child_subfolders=tuple(_prefixes(mirror.get("child_subfolders"), delimiter, "child subfolder")),
            specific_files=tuple(_filenames(mirror.get("specific_files"), delimiter)),
            delimiter=delimiter,
            on_list_error=policy,
            count_empty_targets=_flag(mirror, "count_empty_targets", False),
            atomic_writes=_flag(mirror, "atomic_writes", True),
            page_size=int(page_size) if page_size is not None else None,
            chunk_size=chunk_size,
            aws=AwsSettings.from_mapping(aws or {}),
        )

    def target_prefix(self, scan_target: str) -> str:
        return f"{self.base_prefix}{scan_target}"


def _flag(mirror: Mapping[str, Any], name: str, default: bool) -> bool:
    value = mirror.get(name, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


def _as_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, Iterable):
        raise ConfigError(f"{what} must be a list, got {type(value).__name__}")
    return list(value)


def _check_segments(name: str, delimiter: str, what: str) -> None:
    if any(part in (".", "..") for part in name.split(delimiter)):
        raise ConfigError(f"{what} must not contain '.' or '..' segments: {name!r}")


def _prefixes(values: Any, delimiter: str, what: str):
    for raw in _as_list(values, what + "s"):
        name = str(raw).strip()
        if not name or not name.strip(delimiter):
            raise ConfigError(f"{what} must not be empty")
        if name.startswith(delimiter):
            raise ConfigError(f"{what} must not start with {delimiter!r}: {name!r}")
        _check_segments(name.rstrip(delimiter), delimiter, what)
        yield normalize_prefix(name, delimiter)


def _filenames(values: Any, delimiter: str):
    for raw in _as_list(values, "specific files"):
        name = str(raw).strip()
        if not name:
            raise ConfigError("specific file name must not be empty")
        if name.startswith(delimiter) or name.endswith(delimiter):
            raise ConfigError(f"specific file name must not start or end with {delimiter!r}: {name!r}")
        _check_segments(name, delimiter, "specific file name")
        yield name


@log_and_reraise(ConfigError)
def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load YAML config if present, otherwise return {}.
    A missing default config is fine; a missing explicit one is not.
    """
    try:
        cfg = read_yaml(path or DEFAULT_CONFIG)
    except FileNotFoundError:
        if path:
            raise ConfigError(f"config file not found: {path}")
        return {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"config root must be a mapping, got {type(cfg).__name__}")
    return cfg
