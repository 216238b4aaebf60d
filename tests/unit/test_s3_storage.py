"""
Unit tests for S3ReportStorage.

Uses moto for AWS mocking.
"""

from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError, NoCredentialsError
from moto import mock_aws

from kubeguard.src.interfaces import StorageError
from kubeguard.src.storage.s3_storage import S3ReportStorage, create_storage


class TestPutObject:
    """Tests for put_object."""

    @mock_aws
    def test_uploads_file_contents(self, tmp_path):
        """put_object should store the file as a text object."""
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="test-bucket")

        report = tmp_path / "report.log"
        report.write_bytes(b"| KHV002 | Kubernetes version disclosure |\n")

        storage = S3ReportStorage(region="us-east-1")
        storage.put_object(str(report), "test-bucket", "reports/2026-10-18/scan.log")

        response = s3.get_object(Bucket="test-bucket", Key="reports/2026-10-18/scan.log")
        assert response["Body"].read() == b"| KHV002 | Kubernetes version disclosure |\n"
        assert response["ContentType"].startswith("text/plain")

    @mock_aws
    def test_missing_bucket_raises_storage_error(self, tmp_path):
        """Uploading to a non-existent bucket should raise StorageError."""
        report = tmp_path / "report.log"
        report.write_bytes(b"data")

        storage = S3ReportStorage(region="us-east-1")

        with pytest.raises(StorageError):
            storage.put_object(str(report), "no-such-bucket", "scan.log")

    def test_missing_local_file_raises_storage_error(self, tmp_path):
        storage = S3ReportStorage(region="us-east-1", s3_client=MagicMock(), sts_client=MagicMock())

        with pytest.raises(StorageError):
            storage.put_object(str(tmp_path / "gone.log"), "bucket", "scan.log")


class TestBucketExists:
    """Tests for bucket_exists."""

    @mock_aws
    def test_existing_bucket(self):
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="test-bucket")

        assert S3ReportStorage(region="us-east-1").bucket_exists("test-bucket") is True

    @mock_aws
    def test_missing_bucket(self):
        assert S3ReportStorage(region="us-east-1").bucket_exists("missing-bucket") is False

    def test_forbidden_bucket(self):
        mock_s3 = MagicMock()
        mock_s3.head_bucket.side_effect = ClientError({"Error": {"Code": "403"}}, "HeadBucket")

        storage = S3ReportStorage(region="us-east-1", s3_client=mock_s3, sts_client=MagicMock())

        assert storage.bucket_exists("locked-bucket") is False

    def test_unexpected_error_raises(self):
        mock_s3 = MagicMock()
        mock_s3.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "InternalError"}}, "HeadBucket"
        )

        storage = S3ReportStorage(region="us-east-1", s3_client=mock_s3, sts_client=MagicMock())

        with pytest.raises(StorageError):
            storage.bucket_exists("bucket")


class TestGetCallerIdentity:
    """Tests for get_caller_identity."""

    @mock_aws
    def test_returns_arn(self):
        arn = S3ReportStorage(region="us-east-1").get_caller_identity()
        assert arn.startswith("arn:aws:")

    def test_missing_credentials_raises(self):
        mock_sts = MagicMock()
        mock_sts.get_caller_identity.side_effect = NoCredentialsError()

        storage = S3ReportStorage(region="ap-south-1", s3_client=MagicMock(), sts_client=mock_sts)

        with pytest.raises(StorageError, match="ap-south-1"):
            storage.get_caller_identity()


class TestCreateStorage:
    """Tests for create_storage."""

    def test_default_chain(self):
        storage = create_storage("us-east-1")
        assert storage.region == "us-east-1"

    def test_unknown_profile_raises(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
        monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))

        with pytest.raises(StorageError, match="no-such-profile"):
            create_storage("us-east-1", profile="no-such-profile")
