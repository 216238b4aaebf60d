"""
Scan Orchestrator - Run one kube-hunter Job and ship its report to S3.

This module drives the Job lifecycle for a single invocation:
1. Check prerequisites (tools on PATH, manifest file, AWS identity, bucket)
2. Apply the Job manifest
3. Wait for the complete condition (bounded by the configured timeout)
4. Fetch the logs and upload them under a dated key
5. Delete the Job

On timeout or Job failure the orchestrator captures the last N log lines,
uploads them under a FAILED_ key when anything was captured, deletes the Job
and reports failure. Nothing is retried.

Usage:
    orchestrator = ScanOrchestrator(
        job=config.job_descriptor(),
        s3_bucket="kubeguard-reports",
        base_folder="kube-hunter-reports",
        cluster=KubectlClient(),
        storage=S3ReportStorage(region="ap-south-1"),
    )
    result = orchestrator.run()
    sys.exit(result.exit_code)
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from kubeguard.src.config import DEFAULT_FAILURE_LOG_TAIL_LINES, check_manifest_matches
from kubeguard.src.interfaces import (
    ClusterClient,
    ClusterCommandError,
    StorageClient,
    StorageError,
)
from kubeguard.src.models import (
    JobDescriptor,
    ReportLocation,
    ScanOutcome,
    ScanResult,
    build_report_key,
)

logger = logging.getLogger(__name__)


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""
    pass


class PrerequisiteError(OrchestratorError):
    """Raised when a pre-flight check fails; no cluster call has been made."""
    pass


class ScanOrchestrator:
    """
    Coordinate submission, monitoring, report upload and cleanup of a Job.

    This is the main entry point for scan runs.
    """

    def __init__(
        self,
        job: JobDescriptor,
        s3_bucket: str,
        base_folder: str,
        cluster: ClusterClient,
        storage: StorageClient,
        failure_log_tail_lines: int = DEFAULT_FAILURE_LOG_TAIL_LINES,
        tool_lookup: Callable[[str], Optional[str]] = shutil.which,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize orchestrator.

        Args:
            job: The Job to run
            s3_bucket: Destination bucket for reports
            base_folder: Top-level folder within the bucket
            cluster: Cluster client (kubectl or a fake)
            storage: Storage client (S3 or a fake)
            failure_log_tail_lines: Lines kept from a failed Job's logs
            tool_lookup: Resolves an executable name to a path (for testing)
            clock: Returns the current local time (for testing)
        """
        self.job = job
        self.s3_bucket = s3_bucket
        self.base_folder = base_folder
        self.failure_log_tail_lines = failure_log_tail_lines
        self._cluster = cluster
        self._storage = storage
        self._tool_lookup = tool_lookup
        self._clock = clock

    def check_prerequisites(self) -> List[str]:
        """
        Run pre-flight checks.

        Returns:
            Non-fatal warnings (e.g. manifest metadata mismatch)

        Raises:
            PrerequisiteError: If a tool is missing, the manifest is absent,
                the AWS identity cannot be resolved or the bucket is unreachable
        """
        for tool in self._cluster.required_tools + self._storage.required_tools:
            if self._tool_lookup(tool) is None:
                logger.error(f"Checking for {tool}... [MISSING]")
                raise PrerequisiteError(
                    f"{tool} command not found. Please install and configure {tool}."
                )
            logger.info(f"Checking for {tool}... [OK]")

        if not Path(self.job.manifest_path).is_file():
            raise PrerequisiteError(f"YAML file '{self.job.manifest_path}' not found.")

        warnings = check_manifest_matches(
            self.job.manifest_path, self.job.name, self.job.namespace
        )
        for warning in warnings:
            logger.warning(f"[WARN] {warning}")

        logger.info("--- AWS & S3 Checks ---")
        try:
            identity = self._storage.get_caller_identity()
        except StorageError as e:
            raise PrerequisiteError(str(e)) from e
        logger.info(f"Script will use AWS identity: {identity}")
        logger.info(
            f"Ensure this identity has 's3:PutObject' permissions on "
            f"'s3://{self.s3_bucket}/{self.base_folder}/*' and "
            f"'s3:ListBucket' permissions for '{self.s3_bucket}'."
        )

        try:
            exists = self._storage.bucket_exists(self.s3_bucket)
        except StorageError as e:
            raise PrerequisiteError(str(e)) from e
        if not exists:
            raise PrerequisiteError(
                f"Bucket '{self.s3_bucket}' does not exist, or you lack permissions "
                f"to access it. Please create the bucket or check permissions/region."
            )
        logger.info(f"[OK] S3 bucket '{self.s3_bucket}' is accessible.")

        return warnings

    def run(self) -> ScanResult:
        """
        Execute the full Job lifecycle once.

        Returns:
            ScanResult; its exit_code is 0 only for SUCCEEDED and EMPTY_REPORT
        """
        result = ScanResult(outcome=ScanOutcome.SUCCEEDED)
        job = self.job

        logger.info("--- Checking Prerequisites ---")
        try:
            result.warnings.extend(self.check_prerequisites())
        except PrerequisiteError as e:
            logger.error(f"[ERROR] {e}")
            result.outcome = ScanOutcome.PREREQUISITE_FAILED
            return result

        logger.info("--- Running Kube-Hunter Job ---")
        logger.info(
            f"Applying Job manifest from '{job.manifest_path}' in namespace '{job.namespace}'..."
        )
        try:
            self._cluster.apply(job.manifest_path, job.namespace)
        except ClusterCommandError as e:
            logger.error(f"[ERROR] Failed to apply Job manifest: {e}")
            result.outcome = ScanOutcome.SUBMISSION_FAILED
            return result

        logger.info(
            f"Waiting up to {job.completion_timeout}s for Job '{job.name}' "
            f"in namespace '{job.namespace}' to complete..."
        )
        try:
            self._cluster.wait_for_complete(job.name, job.namespace, job.completion_timeout)
        except ClusterCommandError as e:
            logger.error(
                f"[ERROR] Job '{job.name}' did not complete within the timeout period "
                f"or failed: {e}"
            )
            self._capture_failure(result)
            result.outcome = ScanOutcome.JOB_INCOMPLETE
            return result
        logger.info(f"[OK] Job '{job.name}' completed successfully.")

        logger.info("--- Fetching Logs & Uploading Report ---")
        try:
            logs = self._cluster.get_logs(job.name, job.namespace)
        except ClusterCommandError as e:
            logger.error(f"[ERROR] Failed to fetch logs from completed Job '{job.name}': {e}")
            self._cleanup(result, ignore_not_found=True)
            result.outcome = ScanOutcome.LOG_FETCH_FAILED
            return result

        if not logs:
            logger.info("[INFO] Logs fetched successfully but are empty. Skipping S3 upload.")
            result.outcome = ScanOutcome.EMPTY_REPORT
        else:
            logger.info(f"[OK] Logs fetched successfully ({len(logs)} bytes).")
            location = self._report_location(failed=False)
            logger.info(f"Uploading report to: {location.uri}")
            try:
                self._upload(logs, location)
            except StorageError as e:
                logger.error(
                    f"[ERROR] Failed to upload report to S3. "
                    f"Check AWS permissions or network. ({e})"
                )
                self._cleanup(result, ignore_not_found=True)
                result.outcome = ScanOutcome.UPLOAD_FAILED
                return result
            logger.info("[OK] Report successfully uploaded to S3.")
            result.report = location

        logger.info("--- Cleaning Up ---")
        self._cleanup(result)

        self._log_summary(result)
        return result

    def _capture_failure(self, result: ScanResult) -> None:
        """Best-effort diagnostics after a timeout or Job failure, then cleanup."""
        job = self.job

        try:
            phase = self._cluster.get_job_phase(job.name, job.namespace)
            logger.info(
                f"Job '{job.name}' phase: {phase.value if phase else 'not found'}"
            )
        except ClusterCommandError as e:
            logger.warning(f"[WARN] Could not determine Job status: {e}")

        logger.info(f"Attempting to fetch logs for Job '{job.name}' despite incomplete status...")
        try:
            logs = self._cluster.get_logs(
                job.name, job.namespace, tail_lines=self.failure_log_tail_lines
            )
        except ClusterCommandError as e:
            logger.warning("[WARN] Could not fetch logs for failed/incomplete Job.")
            # The kubectl error text is itself the diagnostic worth keeping
            logs = e.output.encode("utf-8")

        if logs:
            location = self._report_location(failed=True)
            logger.info(f"Attempting to upload failure log to {location.uri}...")
            try:
                self._upload(logs, location)
                logger.info("[OK] Failure log uploaded to S3.")
                result.report = location
            except StorageError as e:
                message = f"Failed to upload failure log to S3: {e}"
                logger.warning(f"[WARN] {message}")
                result.warnings.append(message)
        else:
            logger.info("[INFO] No logs captured for failed/incomplete Job, skipping S3 upload.")

        logger.info(f"Attempting to delete potentially incomplete Job '{job.name}'...")
        self._cleanup(result, ignore_not_found=True)

    def _cleanup(self, result: ScanResult, ignore_not_found: bool = False) -> None:
        """
        Delete the Job.

        A failed delete is never fatal. If the Job is gone afterwards the
        failure is informational, otherwise it is a warning for the operator.
        The follow-up lookup races with anything else deleting the Job.
        """
        job = self.job
        logger.info(f"Deleting Job '{job.name}' in namespace '{job.namespace}'...")
        try:
            self._cluster.delete(job.name, job.namespace, ignore_not_found=ignore_not_found)
            result.job_deleted = True
            logger.info(f"[OK] Job '{job.name}' deleted successfully.")
            return
        except ClusterCommandError as e:
            delete_error = e

        try:
            still_exists = self._cluster.get_job_phase(job.name, job.namespace) is not None
        except ClusterCommandError:
            still_exists = True

        if still_exists:
            message = (
                f"Failed to delete Job '{job.name}', but it might still exist. "
                f"Manual check recommended. ({delete_error})"
            )
            logger.warning(f"[WARN] {message}")
            result.warnings.append(message)
        else:
            result.job_deleted = True
            logger.info(
                f"[INFO] Job '{job.name}' already deleted or deletion command failed "
                f"after it was gone."
            )

    def _report_location(self, failed: bool) -> ReportLocation:
        key = build_report_key(self.base_folder, self.job.name, self._clock(), failed=failed)
        return ReportLocation(bucket=self.s3_bucket, key=key)

    def _upload(self, data: bytes, location: ReportLocation) -> None:
        """
        Stage the log buffer in a temp file, upload it, and remove it.

        Raises:
            StorageError: If staging fails locally or the upload fails
        """
        try:
            fd, temp_path = tempfile.mkstemp(prefix="kube-hunter-report.", suffix=".log")
        except OSError as e:
            raise StorageError(f"Failed to create temporary log file: {e}") from e

        try:
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
            except OSError as e:
                raise StorageError(f"Failed to write logs to {temp_path}: {e}") from e
            logger.debug(f"Saved logs to temporary file: {temp_path}")
            self._storage.put_object(temp_path, location.bucket, location.key)
        finally:
            try:
                os.unlink(temp_path)
                logger.debug("Temporary log file cleaned up.")
            except OSError as e:
                logger.warning(f"[WARN] Could not remove temporary log file {temp_path}: {e}")

    def _log_summary(self, result: ScanResult) -> None:
        logger.info("--- Kube-Hunter Scan Process Finished ---")
        if result.report is not None:
            logger.info("[SUCCESS] Job ran, logs fetched, and report uploaded.")
            logger.info(f" Report uploaded to: {result.report.uri}")
        else:
            logger.info(
                "[SUCCESS] Job ran and completed. Log file was empty, so no report uploaded."
            )
        if result.warnings:
            logger.warning(
                f"{len(result.warnings)} warning(s) need manual follow-up, see above."
            )
