from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from s3_mirror.config import MirrorConfig


def client_error(code: str, op: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class BrokenBody:
    """Stream that dies after the first chunk."""

    def __init__(self, first: bytes = b"partial"):
        self.first = first
        self.closed = False

    def iter_chunks(self, chunk_size: int = 1024):
        yield self.first
        raise ConnectionResetError("connection reset by peer")

    def close(self):
        self.closed = True


class FakePaginator:
    def __init__(self, s3: "FakeS3"):
        self.s3 = s3

    def paginate(self, Bucket: str, Prefix: str = "", Delimiter: Optional[str] = None, PaginationConfig=None):
        self.s3.list_calls.append((Prefix, Delimiter))
        if Bucket != self.s3.bucket:
            raise client_error("NoSuchBucket", "ListObjectsV2")
        page_size = (PaginationConfig or {}).get("PageSize") or self.s3.page_size
        return self._pages(Prefix, Delimiter, page_size)

    def _pages(self, prefix: str, delimiter: Optional[str], page_size: int):
        # errors surface while iterating, like the real paginator
        if prefix in self.s3.list_failures:
            raise client_error("AccessDenied", "ListObjectsV2")

        entries: List[tuple] = []
        seen_prefixes = set()
        for key in sorted(k for k in self.s3.objects if k.startswith(prefix)):
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                cp = prefix + rest[: rest.index(delimiter) + 1]
                if cp not in seen_prefixes:
                    seen_prefixes.add(cp)
                    entries.append(("cp", cp))
            else:
                entries.append(("obj", key))

        if not entries:
            yield {"KeyCount": 0, "IsTruncated": False}
            return
        for start in range(0, len(entries), page_size):
            chunk = entries[start : start + page_size]
            page: Dict = {"KeyCount": len(chunk), "IsTruncated": start + page_size < len(entries)}
            contents = [{"Key": v, "Size": len(self.s3.objects[v])} for t, v in chunk if t == "obj"]
            prefixes = [{"Prefix": v} for t, v in chunk if t == "cp"]
            if contents:
                page["Contents"] = contents
            if prefixes:
                page["CommonPrefixes"] = prefixes
            yield page


class FakeS3:
    """In-memory stand-in for the boto3 S3 client calls the mirror uses."""

    def __init__(self, objects: Dict[str, bytes], bucket: str = "test-bucket", page_size: int = 2):
        self.bucket = bucket
        self.objects = dict(objects)
        self.page_size = page_size
        self.list_calls: List[tuple] = []
        self.get_calls: List[str] = []
        self.list_failures: set = set()
        self.get_failures: set = set()
        self.broken_streams: set = set()

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def get_object(self, Bucket: str, Key: str):
        self.get_calls.append(Key)
        if Key in self.get_failures:
            raise client_error("InternalError", "GetObject")
        if Key in self.broken_streams:
            return {"Body": BrokenBody()}
        if Bucket != self.bucket or Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        data = self.objects[Key]
        return {"Body": StreamingBody(io.BytesIO(data), len(data)), "ContentLength": len(data)}


def files_under(root: Path) -> List[str]:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


@pytest.fixture
def record_objects() -> Dict[str, bytes]:
    return {
        "base/folder1/rec-1/metadata.json": b'{"id": 1}',
        "base/folder1/rec-1/photos/": b"",
        "base/folder1/rec-1/photos/img1.jpg": b"\xff\xd8jpeg-1",
        "base/folder1/rec-1/photos/nested/img2.jpg": b"\xff\xd8jpeg-2",
        "base/folder1/rec-1/other/ignored.txt": b"not mirrored",
        "base/folder1/rec-2/metadata.json": b'{"id": 2}',
        "base/folder1/rec-2/photos/img3.jpg": b"\xff\xd8jpeg-3",
    }


@pytest.fixture
def fake_s3(record_objects) -> FakeS3:
    return FakeS3(record_objects)


@pytest.fixture
def make_config(tmp_path):
    def _make(
        targets: Iterable[str] = ("folder1",),
        children: Iterable[str] = ("photos/",),
        files: Iterable[str] = ("metadata.json",),
        **extra,
    ) -> MirrorConfig:
        mapping = {
            "bucket": "test-bucket",
            "base_prefix": "base/",
            "local_root": str(tmp_path / "out"),
            "scan_targets": list(targets),
            "child_subfolders": list(children),
            "specific_files": list(files),
        }
        mapping.update(extra)
        return MirrorConfig.from_mapping(mapping)

    return _make
