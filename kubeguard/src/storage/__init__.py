"""
Report Storage Module

This module provides S3ReportStorage for uploading scan reports to S3.
"""

from .s3_storage import S3ReportStorage, create_storage

__all__ = ["S3ReportStorage", "create_storage"]
