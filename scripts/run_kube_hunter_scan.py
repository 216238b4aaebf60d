#!/usr/bin/env python3
"""
Run a kube-hunter scan from a source checkout.

Environment Variables:
    S3_BUCKET: Destination bucket (default: kubeguard-reports)
    AWS_REGION: AWS region (default: ap-south-1)
    MANIFEST_PATH: Job manifest (default: kube-hunter-job.yaml)
    JOB_COMPLETION_TIMEOUT: Wait limit (default: 300s)

Usage:
    python scripts/run_kube_hunter_scan.py
    S3_BUCKET=my-secure-bucket python scripts/run_kube_hunter_scan.py --timeout 10m
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from kubeguard.src.cli import main

if __name__ == "__main__":
    sys.exit(main())
