"""
KubeGuard - Kubernetes security scan runner

This package runs a kube-hunter Job on a cluster, ships the report to S3
and cleans up after itself.

Core modules:
    - models: Data classes (JobDescriptor, ScanResult, ReportLocation, etc.)
    - interfaces: Abstract interfaces (ClusterClient, StorageClient)
    - cluster: kubectl-backed ClusterClient
    - storage: S3-backed StorageClient
    - orchestrate: The Job lifecycle state machine
"""

from kubeguard.src.models import (
    JobDescriptor,
    JobPhase,
    ReportLocation,
    ScanOutcome,
    ScanResult,
)
from kubeguard.src.interfaces import (
    ClusterClient,
    ClusterCommandError,
    StorageClient,
    StorageError,
)

__all__ = [
    "JobDescriptor",
    "JobPhase",
    "ReportLocation",
    "ScanOutcome",
    "ScanResult",
    "ClusterClient",
    "ClusterCommandError",
    "StorageClient",
    "StorageError",
]
