"""
Runtime configuration for the KubeGuard scan runner.

Every setting has a compiled-in default and can be overridden through an
environment variable (a .env file is honoured by the CLI) or a CLI flag.

Environment Variables:
    S3_BUCKET: Destination bucket (default: kubeguard-reports)
    AWS_REGION: Region for S3/STS (default: ap-south-1)
    S3_BASE_FOLDER: Top-level folder within the bucket (default: kube-hunter-reports)
    JOB_NAME: Job name, must match the manifest (default: kube-hunter-scan-job)
    NAMESPACE: Job namespace, must match the manifest (default: default)
    MANIFEST_PATH: Job manifest file (default: kube-hunter-job.yaml)
    JOB_COMPLETION_TIMEOUT: Wait limit, e.g. "300", "300s", "5m" (default: 300s)
    FAILURE_LOG_TAIL_LINES: Lines kept from a failed job's logs (default: 500)
    KUBECTL_CONTEXT: kubeconfig context (default: current context)
    LOG_LEVEL: Logging level (default: INFO)
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

import yaml

from kubeguard.src.models import JobDescriptor

logger = logging.getLogger(__name__)

DEFAULT_S3_BUCKET = "kubeguard-reports"
DEFAULT_AWS_REGION = "ap-south-1"
DEFAULT_S3_BASE_FOLDER = "kube-hunter-reports"
DEFAULT_JOB_NAME = "kube-hunter-scan-job"
DEFAULT_NAMESPACE = "default"
DEFAULT_MANIFEST_PATH = "kube-hunter-job.yaml"
DEFAULT_COMPLETION_TIMEOUT = "300s"
DEFAULT_FAILURE_LOG_TAIL_LINES = 500

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smh]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: str) -> int:
    """
    Parse a kubectl-style duration into seconds.

    Accepts a bare integer (seconds) or an integer with an s/m/h suffix.

    Raises:
        ValueError: If the value is malformed or not positive
    """
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(
            f"Invalid duration '{value}'. Expected e.g. '300', '300s', '5m' or '1h'."
        )
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive, got '{value}'")
    return seconds


def _get(env: Mapping[str, str], name: str, default: str) -> str:
    # Empty values fall back to the default, as `${VAR:-default}` does
    return env.get(name) or default


@dataclass
class ScanConfig:
    """All settings for one scan run."""

    s3_bucket: str = DEFAULT_S3_BUCKET
    aws_region: str = DEFAULT_AWS_REGION
    s3_base_folder: str = DEFAULT_S3_BASE_FOLDER
    job_name: str = DEFAULT_JOB_NAME
    namespace: str = DEFAULT_NAMESPACE
    manifest_path: str = DEFAULT_MANIFEST_PATH
    completion_timeout: int = parse_duration(DEFAULT_COMPLETION_TIMEOUT)
    failure_log_tail_lines: int = DEFAULT_FAILURE_LOG_TAIL_LINES
    kubectl_context: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScanConfig":
        """
        Load config from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: If a numeric setting is malformed
        """
        env = os.environ if environ is None else environ

        tail = _get(env, "FAILURE_LOG_TAIL_LINES", str(DEFAULT_FAILURE_LOG_TAIL_LINES))
        try:
            tail_lines = int(tail)
        except ValueError:
            raise ValueError(f"FAILURE_LOG_TAIL_LINES must be an integer, got '{tail}'")
        if tail_lines <= 0:
            raise ValueError(f"FAILURE_LOG_TAIL_LINES must be positive, got {tail_lines}")

        return cls(
            s3_bucket=_get(env, "S3_BUCKET", DEFAULT_S3_BUCKET),
            aws_region=_get(env, "AWS_REGION", DEFAULT_AWS_REGION),
            s3_base_folder=_get(env, "S3_BASE_FOLDER", DEFAULT_S3_BASE_FOLDER),
            job_name=_get(env, "JOB_NAME", DEFAULT_JOB_NAME),
            namespace=_get(env, "NAMESPACE", DEFAULT_NAMESPACE),
            manifest_path=_get(env, "MANIFEST_PATH", DEFAULT_MANIFEST_PATH),
            completion_timeout=parse_duration(
                _get(env, "JOB_COMPLETION_TIMEOUT", DEFAULT_COMPLETION_TIMEOUT)
            ),
            failure_log_tail_lines=tail_lines,
            kubectl_context=env.get("KUBECTL_CONTEXT") or None,
            log_level=_get(env, "LOG_LEVEL", "INFO").upper(),
        )

    def job_descriptor(self) -> JobDescriptor:
        return JobDescriptor(
            name=self.job_name,
            namespace=self.namespace,
            manifest_path=self.manifest_path,
            completion_timeout=self.completion_timeout,
        )


def check_manifest_matches(manifest_path: str, job_name: str, namespace: str) -> list:
    """
    Compare a Job manifest's metadata with the configured name/namespace.

    The manifest stays opaque to the runner; this only produces warnings.
    A manifest without metadata.namespace is applied to the -n namespace,
    so a missing namespace is not reported.

    Args:
        manifest_path: Path to the manifest YAML
        job_name: Configured Job name
        namespace: Configured namespace

    Returns:
        List of human-readable mismatch messages (empty if consistent)
    """
    try:
        with open(manifest_path) as f:
            documents = [doc for doc in yaml.safe_load_all(f) if doc]
    except (OSError, yaml.YAMLError) as e:
        return [f"Could not parse manifest '{manifest_path}': {e}"]

    jobs = [doc for doc in documents if isinstance(doc, dict) and doc.get("kind") == "Job"]
    if not jobs:
        return [f"Manifest '{manifest_path}' does not define a Job"]

    metadata = jobs[0].get("metadata") or {}
    problems = []
    if metadata.get("name") != job_name:
        problems.append(
            f"Manifest Job name '{metadata.get('name')}' does not match configured "
            f"JOB_NAME '{job_name}'"
        )
    manifest_namespace = metadata.get("namespace")
    if manifest_namespace and manifest_namespace != namespace:
        problems.append(
            f"Manifest namespace '{manifest_namespace}' does not match configured "
            f"NAMESPACE '{namespace}'"
        )
    return problems
