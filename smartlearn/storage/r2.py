"""
Cloudflare R2 (S3-compatible) blob storage through boto3.
"""
import logging

import boto3
from botocore.exceptions import ClientError

from smartlearn.core.config import settings
from smartlearn.storage.base import BlobStorage

logger = logging.getLogger(__name__)


class R2Storage(BlobStorage):
    def __init__(self, client=None, bucket: str | None = None):
        self.bucket = bucket or settings.r2_bucket_name
        self.client = client or boto3.client(
            "s3",
            endpoint_url=f"https://{settings.r2_account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=settings.r2_access_key_id,
            aws_secret_access_key=settings.r2_secret_access_key,
            region_name="auto",
        )

    def put(self, key: str, content: bytes, content_type: str) -> str:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        return key

    def sign(self, key: str, ttl_seconds: int, filename: str | None = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        return self.client.generate_presigned_url("get_object", Params=params, ExpiresIn=ttl_seconds)

    def head_exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.warning("r2_head_failed", extra={"error": str(e), "reason": code})
            raise
