"""
Pytest configuration and shared fixtures for scan runner tests.

Provides in-memory ClusterClient / StorageClient fakes so the orchestrator
can be exercised without kubectl or AWS.
"""

from datetime import datetime
from typing import List, Optional

import pytest

from kubeguard.src.interfaces import (
    ClusterClient,
    ClusterCommandError,
    StorageClient,
    StorageError,
)
from kubeguard.src.models import JobDescriptor, JobPhase

FIXED_NOW = datetime(2026, 10, 18, 14, 30, 5)

SAMPLE_MANIFEST = """apiVersion: batch/v1
kind: Job
metadata:
  name: kube-hunter-scan-job
  namespace: default
spec:
  template:
    spec:
      containers:
      - name: kube-hunter
        image: aquasec/kube-hunter
        command: ["kube-hunter"]
        args: ["--pod"]
      restartPolicy: Never
  backoffLimit: 1
"""


# =============================================================================
# Test Helpers
# =============================================================================

def make_command_error(args: str, returncode: int = 1, output: str = "") -> ClusterCommandError:
    """Build a ClusterCommandError for a kubectl invocation."""
    return ClusterCommandError(["kubectl"] + args.split(), returncode, output)


def make_report(n_lines: int = 50) -> bytes:
    """kube-hunter style report with n_lines lines."""
    lines = [f"| KHV{i:03d} | Node/Master | Finding {i} |" for i in range(n_lines)]
    return ("\n".join(lines) + "\n").encode("utf-8")


class FakeClusterClient(ClusterClient):
    """
    Records every call; failures are injected per operation.

    Attributes:
        calls: Ordered list of (operation, kwargs) tuples
        phase: What get_job_phase reports (None = Job not found)
    """

    def __init__(
        self,
        logs: bytes = b"",
        tail_logs: Optional[bytes] = None,
        apply_error: Optional[ClusterCommandError] = None,
        wait_error: Optional[ClusterCommandError] = None,
        logs_error: Optional[ClusterCommandError] = None,
        delete_error: Optional[ClusterCommandError] = None,
        phase: Optional[JobPhase] = JobPhase.COMPLETE,
        required_tools: Optional[List[str]] = None,
    ):
        self.logs = logs
        self.tail_logs = tail_logs if tail_logs is not None else logs
        self.apply_error = apply_error
        self.wait_error = wait_error
        self.logs_error = logs_error
        self.delete_error = delete_error
        self.phase = phase
        self._required_tools = required_tools or []
        self.calls = []

    @property
    def required_tools(self) -> List[str]:
        return self._required_tools

    def operations(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_to(self, operation: str) -> list:
        return [kwargs for name, kwargs in self.calls if name == operation]

    def apply(self, manifest_path, namespace):
        self.calls.append(("apply", {"manifest_path": manifest_path, "namespace": namespace}))
        if self.apply_error:
            raise self.apply_error

    def wait_for_complete(self, name, namespace, timeout_seconds):
        self.calls.append(
            ("wait", {"name": name, "namespace": namespace, "timeout_seconds": timeout_seconds})
        )
        if self.wait_error:
            raise self.wait_error

    def get_logs(self, name, namespace, tail_lines=None):
        self.calls.append(("logs", {"name": name, "namespace": namespace, "tail_lines": tail_lines}))
        if self.logs_error:
            raise self.logs_error
        return self.tail_logs if tail_lines is not None else self.logs

    def delete(self, name, namespace, ignore_not_found=False):
        self.calls.append(
            ("delete", {"name": name, "namespace": namespace, "ignore_not_found": ignore_not_found})
        )
        if self.delete_error:
            raise self.delete_error

    def get_job_phase(self, name, namespace):
        self.calls.append(("get", {"name": name, "namespace": namespace}))
        return self.phase


class FakeStorageClient(StorageClient):
    """
    In-memory storage. Uploaded file contents are read at put time, since
    the orchestrator removes its temp file right after.
    """

    def __init__(
        self,
        identity: str = "arn:aws:iam::123456789012:user/scanner",
        bucket_ok: bool = True,
        identity_error: Optional[StorageError] = None,
        put_error: Optional[StorageError] = None,
    ):
        self.identity = identity
        self.bucket_ok = bucket_ok
        self.identity_error = identity_error
        self.put_error = put_error
        self.uploads = []
        self.uploaded_paths = []

    def get_caller_identity(self):
        if self.identity_error:
            raise self.identity_error
        return self.identity

    def bucket_exists(self, bucket):
        return self.bucket_ok

    def put_object(self, local_path, bucket, key):
        self.uploaded_paths.append(local_path)
        if self.put_error:
            raise self.put_error
        with open(local_path, "rb") as f:
            self.uploads.append({"bucket": bucket, "key": key, "body": f.read()})


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def manifest_file(tmp_path) -> str:
    """A valid Job manifest on disk."""
    path = tmp_path / "kube-hunter-job.yaml"
    path.write_text(SAMPLE_MANIFEST)
    return str(path)


@pytest.fixture
def job(manifest_file) -> JobDescriptor:
    return JobDescriptor(
        name="kube-hunter-scan-job",
        namespace="default",
        manifest_path=manifest_file,
        completion_timeout=300,
    )


@pytest.fixture
def make_orchestrator(job):
    """Factory building a ScanOrchestrator around the given fakes."""
    from kubeguard.src.orchestrate.scan_orchestrator import ScanOrchestrator

    def _make(cluster, storage, job_descriptor=None, tool_lookup=None, tail_lines=500):
        return ScanOrchestrator(
            job=job_descriptor or job,
            s3_bucket="kubeguard-reports",
            base_folder="kube-hunter-reports",
            cluster=cluster,
            storage=storage,
            failure_log_tail_lines=tail_lines,
            tool_lookup=tool_lookup or (lambda tool: f"/usr/local/bin/{tool}"),
            clock=lambda: FIXED_NOW,
        )

    return _make
