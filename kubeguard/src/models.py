"""
Data models for the KubeGuard scan runner.

These dataclasses define the contract between the orchestrator and its
cluster/storage collaborators. Nothing here is persisted: every value lives
for a single run.

Design Philosophy:
    - Job descriptor in -> ScanResult out
    - Remote keys are derived from wall-clock time at second granularity
    - Exit codes are a property of the outcome, never set independently
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

FAILED_PREFIX = "FAILED_"


@dataclass(frozen=True)
class JobDescriptor:
    """
    The Kubernetes Job the runner manages.

    Attributes:
        name: Job name (must match metadata.name in the manifest)
        namespace: Namespace the Job is applied to
        manifest_path: Path to the Job manifest YAML
        completion_timeout: Seconds to wait for the complete condition
    """

    name: str
    namespace: str
    manifest_path: str
    completion_timeout: int


class JobPhase(Enum):
    """Cluster-reported state of the Job."""

    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETE = "Complete"
    FAILED = "Failed"


class ScanOutcome(Enum):
    """Terminal state of a run."""

    SUCCEEDED = "succeeded"
    EMPTY_REPORT = "empty_report"
    PREREQUISITE_FAILED = "prerequisite_failed"
    SUBMISSION_FAILED = "submission_failed"
    JOB_INCOMPLETE = "job_incomplete"
    LOG_FETCH_FAILED = "log_fetch_failed"
    UPLOAD_FAILED = "upload_failed"

    @property
    def is_success(self) -> bool:
        return self in (ScanOutcome.SUCCEEDED, ScanOutcome.EMPTY_REPORT)


@dataclass(frozen=True)
class ReportLocation:
    """Destination of an uploaded report."""

    bucket: str
    key: str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass
class ScanResult:
    """
    Result of one orchestrator run.

    Attributes:
        outcome: Terminal state reached
        report: Where the report (or failure log) was uploaded, if anywhere
        job_deleted: True if the Job is known to be gone
        warnings: Non-fatal problems surfaced to the operator
    """

    outcome: ScanOutcome
    report: Optional[ReportLocation] = None
    job_deleted: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.outcome.is_success else 1


def build_report_key(
    base_folder: str,
    job_name: str,
    timestamp: datetime,
    failed: bool = False,
) -> str:
    """
    Build the S3 key for a report.

    Success: <base>/<YYYY-MM-DD>/<HHMMSS>/<job>_report_<YYYY-MM-DD>_<HHMMSS>.log
    Failure: <base>/<YYYY-MM-DD>/<HHMMSS>/FAILED_<job>_report.log

    Args:
        base_folder: Top-level folder within the bucket
        job_name: Job name
        timestamp: Time the upload was prepared
        failed: True for the timeout/job-failure branch

    Returns:
        S3 object key
    """
    date_part = timestamp.strftime("%Y-%m-%d")
    time_part = timestamp.strftime("%H%M%S")
    prefix = f"{base_folder.strip('/')}/{date_part}/{time_part}"

    if failed:
        return f"{prefix}/{FAILED_PREFIX}{job_name}_report.log"
    return f"{prefix}/{job_name}_report_{date_part}_{time_part}.log"
