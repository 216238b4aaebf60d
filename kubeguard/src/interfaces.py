"""
Abstract interfaces for the KubeGuard scan runner.

These interfaces enable:
    - ClusterClient: Swappable Kubernetes access (kubectl subprocess, fakes)
    - StorageClient: Swappable report storage (S3 via boto3, fakes)

Design Philosophy:
    - The orchestrator only sees these contracts, never kubectl or boto3
    - Every failure surfaces as ClusterCommandError or StorageError so the
      orchestrator can branch without knowing the backend
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from kubeguard.src.models import JobPhase


class ClusterCommandError(Exception):
    """Raised when a cluster operation fails (non-zero exit or timeout)."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{' '.join(self.command)}' failed with exit code {returncode}"
            + (f": {output.strip()}" if output.strip() else "")
        )


class StorageError(Exception):
    """Raised when an object storage operation fails."""
    pass


class ClusterClient(ABC):
    """
    Abstract interface for the Kubernetes control plane.

    Implementations:
        - KubectlClient: Shells out to kubectl
    """

    @property
    def required_tools(self) -> List[str]:
        """Executables that must be on PATH before the run starts."""
        return []

    @abstractmethod
    def apply(self, manifest_path: str, namespace: str) -> None:
        """Apply a manifest to a namespace."""
        pass

    @abstractmethod
    def wait_for_complete(self, name: str, namespace: str, timeout_seconds: int) -> None:
        """
        Block until the Job reports the complete condition.

        Raises:
            ClusterCommandError: If the timeout elapses or the Job fails
        """
        pass

    @abstractmethod
    def get_logs(
        self, name: str, namespace: str, tail_lines: Optional[int] = None
    ) -> bytes:
        """
        Fetch the Job's pod output.

        Args:
            name: Job name
            namespace: Job namespace
            tail_lines: Only return the last N lines (None = everything)

        Returns:
            Raw log bytes (may be empty)
        """
        pass

    @abstractmethod
    def delete(self, name: str, namespace: str, ignore_not_found: bool = False) -> None:
        """Delete the Job."""
        pass

    @abstractmethod
    def get_job_phase(self, name: str, namespace: str) -> Optional[JobPhase]:
        """
        Observe the Job's current phase.

        Returns:
            JobPhase, or None if the Job does not exist
        """
        pass


class StorageClient(ABC):
    """
    Abstract interface for report storage.

    Implementations:
        - S3ReportStorage: AWS S3 via boto3
    """

    @property
    def required_tools(self) -> List[str]:
        """Executables that must be on PATH before the run starts."""
        return []

    @abstractmethod
    def get_caller_identity(self) -> str:
        """
        Resolve the identity uploads will run as.

        Raises:
            StorageError: If credentials are missing or invalid
        """
        pass

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        """Return True if the bucket exists and is accessible."""
        pass

    @abstractmethod
    def put_object(self, local_path: str, bucket: str, key: str) -> None:
        """
        Upload a local file.

        Raises:
            StorageError: On any upload failure
        """
        pass
