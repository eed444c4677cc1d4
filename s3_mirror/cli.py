# cli.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

import typer
import click
from botocore.exceptions import BotoCoreError

from .config import AwsSettings, MirrorConfig, LIST_ERROR_POLICIES, load_config
from .core import get_s3_client
from .errors import ConfigError, ListError, setup_logging
from .mirror import RunStatistics, run_mirror
from .reporting import LoggingReporter

app = typer.Typer(add_completion=False, help="Mirror S3 record folders to a local directory")

# ---------------- Settings kept in Typer context ----------------
@dataclass
class Settings:
    verbose: bool = False
    aws_profile: Optional[str] = None
    aws_region: Optional[str] = None
    logfile: Optional[str] = None

# ---------------- Helpers ----------------
def _client_from_settings(aws: AwsSettings, settings: Settings):
    """
    Resolve AWS auth/region with priority:
    CLI flags -> ENV (handled inside boto3) -> YAML.
    """
    return get_s3_client(
        aws_profile=settings.aws_profile or aws.profile,
        aws_access_key_id=aws.access_key_id,
        aws_secret_access_key=aws.secret_access_key,
        region_name=settings.aws_region or aws.region,
        retries_max_attempts=aws.retries_max_attempts,
        retries_mode=aws.retries_mode,
        connect_timeout=aws.connect_timeout,
        read_timeout=aws.read_timeout,
    )

def _resolve(cfg: Dict[str, Any], overrides: Dict[str, Any]) -> MirrorConfig:
    mcfg = dict((cfg.get("mirror") or {}) if cfg else {})
    for k, v in overrides.items():
        if v is None or v == []:
            continue
        mcfg[k] = v
    if overrides.get("source"):
        # --from replaces both halves of a YAML bucket/base_prefix pair
        mcfg.pop("bucket", None)
        mcfg.pop("base_prefix", None)
    return MirrorConfig.from_mapping(mcfg, (cfg.get("aws") or {}) if cfg else {})

def _execute(ctx: typer.Context, overrides: Dict[str, Any], config: Optional[str],
             progress: bool, manifest: Optional[str], dry_run: bool) -> RunStatistics:
    log = logging.getLogger("s3_mirror.cli")
    try:
        cfg = load_config(config)
        mirror_cfg = _resolve(cfg, overrides)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)

    try:
        s3 = _client_from_settings(mirror_cfg.aws, ctx.obj)
    except BotoCoreError as e:
        # unknown profile, bad region, unreadable credentials file
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)
    reporter = LoggingReporter(progress=progress, manifest_path=manifest, local_root=mirror_cfg.local_root)

    log.info(
        "Bucket=%s Base=%s Targets=%d Dest=%s Dry-run=%s",
        mirror_cfg.bucket,
        mirror_cfg.base_prefix,
        len(mirror_cfg.scan_targets),
        mirror_cfg.local_root,
        dry_run,
    )
    try:
        return run_mirror(s3, mirror_cfg, reporter=reporter, dry_run=dry_run)
    except ListError as e:
        log.error("Critical error: %s", e)
        raise typer.Exit(code=1)

# ---------------- Root options (global) ----------------
@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region (e.g. eu-west-1)"),
    logfile: Optional[str] = typer.Option(None, "--logfile", help="Also write logs to this file"),
):
    """
    Set up global Settings and logging once.
    """
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, logfile=logfile)

    ctx.obj = Settings(
        verbose=verbose,
        aws_profile=profile,
        aws_region=region,
        logfile=logfile,
    )

# ---------------- RUN / PLAN ----------------
def _overrides(source, to, targets, children, files, on_list_error, count_empty_targets, atomic) -> Dict[str, Any]:
    return {
        "source": source,
        "local_root": to,
        "scan_targets": targets,
        "child_subfolders": children,
        "specific_files": files,
        "on_list_error": on_list_error,
        "count_empty_targets": count_empty_targets,
        "atomic_writes": atomic,
    }

_FROM_HELP = "Bucket and base prefix as an S3 URI (e.g. s3://bucket/gis-data/folder/)"

@app.command("run")
def cmd_run(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--from", help=_FROM_HELP),
    to: Optional[str] = typer.Option(None, "--to", help="Local download root"),
    targets: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Scan target under the base prefix (repeatable)"),
    children: Optional[List[str]] = typer.Option(None, "--child", help="Child subfolder to mirror fully (repeatable)"),
    files: Optional[List[str]] = typer.Option(None, "--file", help="Specific file to fetch per subfolder (repeatable)"),
    on_list_error: Optional[str] = typer.Option(
        None,
        help="What a listing error aborts",
        case_sensitive=False,
        click_type=click.Choice(list(LIST_ERROR_POLICIES), case_sensitive=False),
    ),
    count_empty_targets: Optional[bool] = typer.Option(
        None, "--count-empty-targets/--no-count-empty-targets", help="Count targets without subfolders as processed"
    ),
    atomic: Optional[bool] = typer.Option(None, "--atomic/--no-atomic", help="Write to .part files and rename on success"),
    progress: bool = typer.Option(False, "--progress/--no-progress", help="Show progress bar"),
    manifest: Optional[str] = typer.Option(None, "--manifest", help="Write CSV manifest of every processed object"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """
    Download every configured file and child subfolder of each record folder.
    Objects already present locally are skipped; failed objects do not change the exit code.
    """
    overrides = _overrides(source, to, targets, children, files, on_list_error, count_empty_targets, atomic)
    stats = _execute(ctx, overrides, config, progress, manifest, dry_run=False)
    typer.echo(
        f"Downloaded: {stats.downloaded}, Skipped: {stats.skipped}, Failed: {stats.failed}, "
        f"Total: {stats.total}, Folders: {stats.folders_processed}, Subfolders: {stats.subfolders_scanned}"
    )

@app.command("plan")
def cmd_plan(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--from", help=_FROM_HELP),
    to: Optional[str] = typer.Option(None, "--to", help="Local download root"),
    targets: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Scan target under the base prefix (repeatable)"),
    children: Optional[List[str]] = typer.Option(None, "--child", help="Child subfolder to mirror fully (repeatable)"),
    files: Optional[List[str]] = typer.Option(None, "--file", help="Specific file to fetch per subfolder (repeatable)"),
    on_list_error: Optional[str] = typer.Option(
        None,
        help="What a listing error aborts",
        case_sensitive=False,
        click_type=click.Choice(list(LIST_ERROR_POLICIES), case_sensitive=False),
    ),
    manifest: Optional[str] = typer.Option(None, "--manifest", help="Write CSV manifest of planned objects"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """
    List what `run` would fetch without downloading anything.
    """
    overrides = _overrides(source, to, targets, children, files, on_list_error, None, None)
    stats = _execute(ctx, overrides, config, False, manifest, dry_run=True)
    typer.echo(f"Planned: {stats.planned}, Subfolders: {stats.subfolders_scanned}")
