from __future__ import annotations
from s3_mirror.config import MirrorConfig, load_config
from s3_mirror.core import get_s3_client
from s3_mirror.mirror import run_mirror
from s3_mirror.reporting import LoggingReporter
from s3_mirror.errors import setup_logging

CONFIG_PATH = "config/config.yaml"

if __name__ == "__main__":
    setup_logging()
    cfg = load_config(CONFIG_PATH)
    mirror_cfg = MirrorConfig.from_mapping(cfg["mirror"], cfg.get("aws"))

    s3 = get_s3_client(
        aws_profile=mirror_cfg.aws.profile,
        region_name=mirror_cfg.aws.region,
    )
    stats = run_mirror(s3, mirror_cfg, reporter=LoggingReporter(progress=True))
    print("Downloaded:", stats.downloaded, "Skipped:", stats.skipped, "Failed:", stats.failed)
