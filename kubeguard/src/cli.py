#!/usr/bin/env python3
"""
KubeGuard Scan CLI

Runs a kube-hunter Job on the current cluster, uploads its report to S3
and deletes the Job. Settings come from environment variables (and a .env
file in the working directory); flags override them.

Usage:
    kubeguard-scan
    kubeguard-scan --bucket my-secure-bucket --region us-east-1
    kubeguard-scan --manifest deploy/kube-hunter-job.yaml --timeout 10m
    S3_BUCKET=my-secure-bucket kubeguard-scan

Exit codes:
    0: Report uploaded, or the Job completed with an empty report
    1: Any fatal failure
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from kubeguard.src.cluster import KubectlClient
from kubeguard.src.config import ScanConfig, parse_duration
from kubeguard.src.interfaces import StorageError
from kubeguard.src.orchestrate import ScanOrchestrator
from kubeguard.src.storage import create_storage

logger = logging.getLogger("kubeguard-scan")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging on stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # boto's own INFO chatter drowns out the stage log
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubeguard-scan",
        description="Run a kube-hunter Job and upload its report to S3.",
    )
    parser.add_argument("--bucket", dest="s3_bucket", help="Destination S3 bucket")
    parser.add_argument("--region", dest="aws_region", help="AWS region")
    parser.add_argument("--base-folder", dest="s3_base_folder", help="Top-level S3 folder")
    parser.add_argument("--job-name", dest="job_name", help="Job name (must match manifest)")
    parser.add_argument("--namespace", "-n", dest="namespace", help="Job namespace")
    parser.add_argument("--manifest", "-f", dest="manifest_path", help="Job manifest YAML")
    parser.add_argument(
        "--timeout",
        dest="completion_timeout",
        help="Completion wait limit, e.g. 300s or 5m",
    )
    parser.add_argument(
        "--tail",
        dest="failure_log_tail_lines",
        help="Log lines kept when the Job fails or times out",
    )
    parser.add_argument("--context", dest="kubectl_context", help="kubeconfig context")
    parser.add_argument("--profile", help="AWS named profile (default: standard chain)")
    parser.add_argument("--log-level", dest="log_level", help="Logging level")
    return parser


def load_config(args: argparse.Namespace) -> ScanConfig:
    """
    Environment config with CLI flags layered on top.

    Numeric flags are parsed here, not by argparse, and raise ValueError
    when malformed.

    Raises:
        ValueError: If a setting is malformed
    """
    config = ScanConfig.from_env()
    overrides = {
        f.name: getattr(args, f.name)
        for f in dataclasses.fields(ScanConfig)
        if getattr(args, f.name, None) is not None
    }
    if "completion_timeout" in overrides:
        overrides["completion_timeout"] = parse_duration(overrides["completion_timeout"])
    if "failure_log_tail_lines" in overrides:
        tail = overrides["failure_log_tail_lines"]
        try:
            overrides["failure_log_tail_lines"] = int(tail)
        except ValueError:
            raise ValueError(f"--tail must be an integer, got '{tail}'")
        if overrides["failure_log_tail_lines"] <= 0:
            raise ValueError("--tail must be positive")
    return dataclasses.replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    try:
        args = build_parser().parse_args(argv)
    except SystemExit as e:
        # argparse exits 2 on usage errors; --help exits 0
        return 0 if e.code in (0, None) else 1

    try:
        config = load_config(args)
    except ValueError as e:
        setup_logging()
        logger.error(f"[ERROR] Invalid configuration: {e}")
        return 1

    setup_logging(config.log_level)
    logger.info(
        f"Job '{config.job_name}' in namespace '{config.namespace}', "
        f"reports to s3://{config.s3_bucket}/{config.s3_base_folder}/ ({config.aws_region})"
    )

    try:
        storage = create_storage(config.aws_region, profile=args.profile)
    except StorageError as e:
        logger.error(f"[ERROR] {e}")
        return 1

    orchestrator = ScanOrchestrator(
        job=config.job_descriptor(),
        s3_bucket=config.s3_bucket,
        base_folder=config.s3_base_folder,
        cluster=KubectlClient(context=config.kubectl_context),
        storage=storage,
        failure_log_tail_lines=config.failure_log_tail_lines,
    )
    result = orchestrator.run()

    logger.info(f"Exiting with status {result.exit_code} ({result.outcome.value}).")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
