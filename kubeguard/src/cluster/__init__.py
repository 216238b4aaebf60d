"""
Kubernetes Cluster Access Module

This module provides the KubectlClient, a ClusterClient that drives the
Job lifecycle through the kubectl CLI.
"""

from .kubectl_client import KubectlClient, phase_from_job_status

__all__ = ["KubectlClient", "phase_from_job_status"]
