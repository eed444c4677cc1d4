from __future__ import annotations
from typing import Iterator, Optional, Set, Dict, Any
import logging
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ListError

log = logging.getLogger(__name__)

_LIST_ERRORS = (ClientError, BotoCoreError)


def get_s3_client(
    aws_profile: Optional[str] = None,
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    region_name: Optional[str] = None,
    retries_max_attempts: int = 8,
    retries_mode: str = "standard",
    connect_timeout: int = 10,
    read_timeout: int = 60,
):
    """
    Create a boto3 S3 client with retries and timeouts applied.
    Credentials come from the profile, explicit keys, or boto3's default chain.
    """
    cfg = Config(
        retries={"max_attempts": retries_max_attempts, "mode": retries_mode},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
    )
    if aws_profile:
        session = boto3.Session(profile_name=aws_profile, region_name=region_name)
    else:
        session = boto3.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region_name,
        )
    return session.client("s3", config=cfg)


def _paginate(s3_client, bucket: str, prefix: str, page_size: Optional[int] = None, **extra: Any):
    kwargs: Dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, **extra}
    if page_size:
        kwargs["PaginationConfig"] = {"PageSize": page_size}
    paginator = s3_client.get_paginator("list_objects_v2")
    return paginator.paginate(**kwargs)


def list_common_prefixes(
    s3_client,
    bucket: str,
    prefix: str,
    delimiter: str = "/",
    page_size: Optional[int] = None,
) -> Set[str]:
    """
    Return every common prefix one level below `prefix`, across all pages.
    A set: the same prefix reported on two pages is kept once.
    """
    prefixes: Set[str] = set()
    pages = 0
    try:
        for page in _paginate(s3_client, bucket, prefix, page_size, Delimiter=delimiter):
            pages += 1
            for cp in page.get("CommonPrefixes", []) or []:
                p = cp.get("Prefix")
                if p:
                    prefixes.add(p)
    except _LIST_ERRORS as e:
        raise ListError(prefix, e) from e
    log.debug("Listed %d common prefix(es) under s3://%s/%s in %d page(s)", len(prefixes), bucket, prefix, pages)
    return prefixes


def list_all_keys(
    s3_client,
    bucket: str,
    prefix: str,
    page_size: Optional[int] = None,
) -> Iterator[str]:
    """
    Yield every object key under `prefix` (recursively) in provider order.
    Lazy; the listing error surfaces on the iteration that hits it.
    """
    try:
        for page in _paginate(s3_client, bucket, prefix, page_size):
            for obj in page.get("Contents", []) or []:
                key = obj.get("Key")
                if key:
                    yield key
    except _LIST_ERRORS as e:
        raise ListError(prefix, e) from e
