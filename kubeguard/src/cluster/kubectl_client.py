"""
kubectl-backed ClusterClient.

Every operation is a single blocking `kubectl` invocation. Non-zero exits and
subprocess timeouts are raised as ClusterCommandError carrying the combined
stdout/stderr so callers can log (or upload) the diagnostic text.

Usage:
    from kubeguard.src.cluster import KubectlClient

    cluster = KubectlClient(context="prod-eks")
    cluster.apply("kube-hunter-job.yaml", "default")
    cluster.wait_for_complete("kube-hunter-scan-job", "default", 300)
"""

import json
import logging
import subprocess
from typing import List, Optional

from kubeguard.src.interfaces import ClusterClient, ClusterCommandError
from kubeguard.src.models import JobPhase

logger = logging.getLogger(__name__)

# Hard limit for commands that should return promptly
DEFAULT_COMMAND_TIMEOUT = 120

# Extra slack on top of `kubectl wait --timeout` before the subprocess is killed
WAIT_GRACE_SECONDS = 30


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class KubectlClient(ClusterClient):
    """
    ClusterClient that shells out to kubectl.

    Attributes:
        kubectl_binary: Executable name or path (default: "kubectl")
        context: Optional kubeconfig context passed as --context
        command_timeout: Seconds before a non-wait command is killed
    """

    def __init__(
        self,
        kubectl_binary: str = "kubectl",
        context: Optional[str] = None,
        command_timeout: int = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.kubectl_binary = kubectl_binary
        self.context = context
        self.command_timeout = command_timeout

    @property
    def required_tools(self) -> List[str]:
        return [self.kubectl_binary]

    def _build_command(self, args: List[str]) -> List[str]:
        cmd = [self.kubectl_binary]
        if self.context:
            cmd += ["--context", self.context]
        return cmd + args

    def _run(self, args: List[str], timeout: Optional[int] = None) -> bytes:
        """
        Execute a kubectl command.

        Args:
            args: kubectl arguments (without the binary)
            timeout: Subprocess timeout in seconds (default: command_timeout)

        Returns:
            Raw stdout bytes

        Raises:
            ClusterCommandError: On non-zero exit, timeout, or missing binary
        """
        cmd = self._build_command(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                timeout=timeout or self.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = _decode(e.stdout) + _decode(e.stderr)
            raise ClusterCommandError(cmd, -1, output or f"timed out after {e.timeout}s") from e
        except OSError as e:
            raise ClusterCommandError(cmd, -1, str(e)) from e

        if process.returncode != 0:
            output = _decode(process.stdout)
            if process.stderr:
                output += _decode(process.stderr)
            raise ClusterCommandError(cmd, process.returncode, output)

        return process.stdout

    def apply(self, manifest_path: str, namespace: str) -> None:
        output = self._run(["apply", "-f", manifest_path, "-n", namespace])
        logger.info(_decode(output).strip())

    def wait_for_complete(self, name: str, namespace: str, timeout_seconds: int) -> None:
        self._run(
            [
                "wait",
                "--for=condition=complete",
                f"job/{name}",
                "-n",
                namespace,
                f"--timeout={timeout_seconds}s",
            ],
            timeout=timeout_seconds + WAIT_GRACE_SECONDS,
        )

    def get_logs(
        self, name: str, namespace: str, tail_lines: Optional[int] = None
    ) -> bytes:
        args = ["logs", f"job/{name}", "-n", namespace]
        if tail_lines is not None:
            args.append(f"--tail={tail_lines}")
        return self._run(args)

    def delete(self, name: str, namespace: str, ignore_not_found: bool = False) -> None:
        args = ["delete", "job", name, "-n", namespace]
        if ignore_not_found:
            args.append("--ignore-not-found=true")
        output = self._run(args)
        if output.strip():
            logger.info(_decode(output).strip())

    def get_job_phase(self, name: str, namespace: str) -> Optional[JobPhase]:
        try:
            output = self._run(["get", "job", name, "-n", namespace, "-o", "json"])
        except ClusterCommandError as e:
            if "NotFound" in e.output or "not found" in e.output:
                return None
            raise

        return phase_from_job_status(json.loads(_decode(output)).get("status", {}))


def phase_from_job_status(status: dict) -> JobPhase:
    """
    Map a batch/v1 JobStatus to a JobPhase.

    Terminal conditions win over the active pod count.
    """
    for condition in status.get("conditions") or []:
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Complete":
            return JobPhase.COMPLETE
        if condition.get("type") == "Failed":
            return JobPhase.FAILED

    if status.get("active", 0) > 0:
        return JobPhase.RUNNING
    return JobPhase.PENDING
