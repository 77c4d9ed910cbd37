"""
Object store client for query result files kept in MinIO.
"""
import logging
import re
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from flashquery.core.config import settings
from flashquery.core.exceptions import DownstreamServiceError

logger = logging.getLogger("flashquery.object_store")

_S3_URI = re.compile(r"^s3://[^/]+/")


def object_key_from_path(s3_path: str) -> str:
    """
    Turn ``s3://bucket/path/to/file`` into ``path/to/file``.

    Values without the ``s3://bucket/`` part are already keys.
    """
    return _S3_URI.sub("", s3_path.strip(), count=1)


class ObjectStore:
    """
    Read-only access to a single bucket through the S3 API.

    boto3 is synchronous, so calls run in the threadpool.

    Args:
        bucket: Bucket holding query results
        client: boto3 S3 client
    """

    def __init__(self, bucket: str, client: Any):
        self.bucket = bucket
        self.client = client

    def _read(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    async def get_object_bytes(self, key: str) -> bytes:
        """
        Fetch an object's contents.

        Raises:
            DownstreamServiceError: If the object cannot be read
        """
        try:
            data = await run_in_threadpool(self._read, key)
        except ClientError as e:
            error = e.response.get("Error", {})
            message = error.get("Message") or error.get("Code") or str(e)
            raise DownstreamServiceError(
                f"Failed to fetch {key} from bucket {self.bucket}: {message}",
                service="minio",
            ) from e
        except BotoCoreError as e:
            raise DownstreamServiceError(f"Object store request failed: {e}", service="minio") from e

        logger.debug(f"Fetched {len(data)} bytes from {self.bucket}/{key}")
        return data


def create_s3_client(
    endpoint: str,
    access_key: str,
    secret_key: str,
    secure: bool = False,
    region: Optional[str] = "us-east-1",
) -> Any:
    """Create a boto3 S3 client pointed at a MinIO endpoint."""
    scheme = "https" if secure else "http"
    endpoint_url = endpoint if "://" in endpoint else f"{scheme}://{endpoint}"
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def get_object_store() -> ObjectStore:
    """Get object store client instance."""
    client = create_s3_client(
        settings.MINIO_ENDPOINT,
        settings.MINIO_ACCESS_KEY,
        settings.MINIO_SECRET_KEY,
        settings.MINIO_SECURE,
    )
    return ObjectStore(bucket=settings.MINIO_BUCKET, client=client)
