"""
Object storage for binary assets (product images), backed by an S3-compatible bucket
"""

import logging
import mimetypes
import uuid
from functools import lru_cache
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


@lru_cache(maxsize=1)
def _s3_client():
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )


class ObjectStorage:
    def __init__(self, client=None, bucket: Optional[str] = None):
        self.client = client or _s3_client()
        self.bucket = bucket or settings.S3_BUCKET

    @staticmethod
    def _check_key(key: str) -> str:
        # Keys are bucket paths under products/, never relative hops
        if not key or key.startswith("/") or ".." in key.split("/"):
            raise NotFoundError("Object not found")
        return key

    @staticmethod
    def product_image_key(company_id: str, product_id: str, filename: str) -> str:
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if extension not in ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(f"Unsupported image type, use one of: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}")
        return f"products/{company_id}/{product_id}/{uuid.uuid4().hex}.{extension}"

    async def put(self, key: str, data: bytes) -> str:
        if len(data) > MAX_IMAGE_BYTES:
            raise ValidationError("File is too large")
        key = self._check_key(key)
        content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        await run_in_threadpool(
            self.client.put_object, Bucket=self.bucket, Key=key, Body=data, ContentType=content_type
        )
        logger.info(f"Stored object {key} in bucket {self.bucket} ({len(data)} bytes)")
        return key

    async def get(self, key: str) -> Tuple[bytes, str]:
        key = self._check_key(key)
        try:
            response = await run_in_threadpool(self.client.get_object, Bucket=self.bucket, Key=key)
            content = await run_in_threadpool(response["Body"].read)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                raise NotFoundError("Image not found") from e
            logger.error(f"Error reading object {key} from bucket {self.bucket}: {str(e)}")
            raise
        except BotoCoreError as e:
            logger.error(f"Object storage unavailable reading {key}: {str(e)}")
            raise
        content_type = response.get("ContentType") or mimetypes.guess_type(key)[0] or "application/octet-stream"
        return content, content_type

    @staticmethod
    def public_url(key: str) -> str:
        return f"{settings.API_V1_STR}/products/images/{key}"


def get_storage() -> ObjectStorage:
    return ObjectStorage()
