# aderm/services/storage_service.py

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError

from aderm.core.logger import logger


class BlobStorage(ABC):
    """Upload bytes and mint time-limited download links."""

    bucket: str

    @abstractmethod
    def upload(self, key: str, payload: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    def download(self, key: str) -> bytes:
        ...

    @abstractmethod
    def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        ...


class S3Storage(BlobStorage):
    """
    Service layer for AWS S3 operations.
    """

    def __init__(
        self,
        bucket: str,
        region_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        self.s3_client = boto3.client(
            's3',
            region_name=region_name,
            aws_access_key_id=aws_access_key_id or None,
            aws_secret_access_key=aws_secret_access_key or None,
        )
        self.bucket = bucket

    def upload(self, key: str, payload: bytes, content_type: str) -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload,
                ContentType=content_type,
            )
            logger.info(f"Object uploaded: {key}")
        except ClientError as e:
            logger.error(f"Failed to upload object {key}: {str(e)}")
            raise

    def download(self, key: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            return response['Body'].read()
        except ClientError as e:
            logger.error(f"Failed to download object {key}: {str(e)}")
            raise

    def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        """
        Generate pre-signed URL for GET operation (download).
        """
        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': key
                },
                ExpiresIn=expires_in
            )
            logger.info(f"Generated download URL for: {key}")
            return url
        except ClientError as e:
            logger.error(f"Failed to generate download URL: {str(e)}")
            raise


class DevStorage(BlobStorage):
    """In-process storage; URLs are placeholders in the S3 shape."""

    def __init__(self, bucket: str = "aderm-dev"):
        self.bucket = bucket
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def upload(self, key: str, payload: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[key] = payload
        logger.info("[DEV STORAGE] stored %s (%d bytes, %s)", key, len(payload), content_type)

    def download(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise KeyError(key)
            return self._objects[key]

    def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(key)}?expires={expires_in}"

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects


def build_storage(settings) -> BlobStorage:
    provider = settings.STORAGE_PROVIDER
    if provider == "dev":
        return DevStorage(bucket=settings.S3_BUCKET_NAME)
    if provider == "s3":
        return S3Storage(
            bucket=settings.S3_BUCKET_NAME,
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
    raise ValueError(f"Unsupported STORAGE_PROVIDER: {provider}")
