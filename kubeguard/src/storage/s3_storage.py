"""
S3-backed StorageClient for scan reports.

Keeps S3/STS interactions isolated for easier testing with moto. All boto3
and botocore errors are re-raised as StorageError so the orchestrator can
branch without importing botocore.
"""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kubeguard.src.interfaces import StorageClient, StorageError

logger = logging.getLogger(__name__)

REPORT_CONTENT_TYPE = "text/plain; charset=utf-8"


class S3ReportStorage(StorageClient):
    """
    Upload scan reports to S3.

    Attributes:
        region: AWS region for both the S3 and STS clients
    """

    def __init__(self, region: str, s3_client=None, sts_client=None):
        """
        Initialize the storage client.

        Args:
            region: AWS region
            s3_client: Optional S3 client (for testing)
            sts_client: Optional STS client (for testing)
        """
        self.region = region
        self._s3_client = s3_client or boto3.client("s3", region_name=region)
        self._sts_client = sts_client or boto3.client("sts", region_name=region)

    def get_caller_identity(self) -> str:
        try:
            response = self._sts_client.get_caller_identity()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(
                f"Failed to get AWS caller identity. "
                f"Is AWS configured correctly for region {self.region}? ({e})"
            ) from e
        return response["Arn"]

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self._s3_client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("404", "403", "NoSuchBucket", "Forbidden"):
                logger.info(f"head_bucket for '{bucket}' returned {error_code}")
                return False
            raise StorageError(f"Failed to check bucket '{bucket}': {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to check bucket '{bucket}': {e}") from e

    def put_object(self, local_path: str, bucket: str, key: str) -> None:
        try:
            with open(local_path, "rb") as f:
                self._s3_client.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=f,
                    ContentType=REPORT_CONTENT_TYPE,
                )
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError(f"Failed to upload {local_path} to s3://{bucket}/{key}: {e}") from e

        logger.info(f"Uploaded {local_path} to s3://{bucket}/{key}")


def create_storage(region: str, profile: Optional[str] = None) -> S3ReportStorage:
    """
    Build an S3ReportStorage, optionally from a named AWS profile.

    Args:
        region: AWS region
        profile: Named profile from ~/.aws/config (None = default chain)

    Returns:
        S3ReportStorage bound to the region
    """
    if not profile:
        return S3ReportStorage(region=region)

    try:
        session = boto3.Session(profile_name=profile, region_name=region)
    except BotoCoreError as e:
        raise StorageError(f"Failed to load AWS profile '{profile}': {e}") from e
    return S3ReportStorage(
        region=region,
        s3_client=session.client("s3"),
        sts_client=session.client("sts"),
    )
