from __future__ import annotations
import logging
import functools
from typing import Type, Callable, Any

class MirrorError(Exception): pass

class ConfigError(MirrorError): pass

class ListError(MirrorError):
    """Listing under `prefix` failed; the whole pagination loop was aborted."""

    def __init__(self, prefix: str, cause: BaseException):
        super().__init__(f"listing {prefix!r} failed: {cause}")
        self.prefix = prefix
        self.cause = cause

class FetchError(MirrorError):
    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"{key}: {cause}")
        self.key = key
        self.cause = cause

def setup_logging(level: int = logging.INFO, logfile: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(h)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)
    if logfile:
        fh = logging.FileHandler(logfile)
        fh.setFormatter(fmt)
        root.addHandler(fh)

def log_and_reraise(exception_cls: Type[Exception] = MirrorError):
    def deco(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*a, **kw):
            try:
                return func(*a, **kw)
            except MirrorError:
                raise
            except Exception as e:
                logging.getLogger(func.__module__).error("%s failed: %s", func.__name__, e)
                raise exception_cls(f"{func.__name__} failed: {e}") from e
        return wrapper
    return deco
