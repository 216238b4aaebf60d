"""
Orchestration module for a single scan run.

This module coordinates the full workflow:
1. Pre-flight checks (tools, manifest, AWS identity, bucket)
2. Apply the Job and wait for completion
3. Upload the report and delete the Job
"""

from kubeguard.src.orchestrate.scan_orchestrator import (
    OrchestratorError,
    PrerequisiteError,
    ScanOrchestrator,
)

__all__ = ["OrchestratorError", "PrerequisiteError", "ScanOrchestrator"]
