from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException

from socialfeed.core.settings import Settings
from socialfeed.core.time import now_ms

logger = logging.getLogger(__name__)


def _extension(filename: Optional[str], content_type: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
        if ext.isalnum():
            return ext
    if content_type and "/" in content_type:
        return content_type.split("/", 1)[1].split(";", 1)[0].strip().lower() or "bin"
    return "bin"


def _clean_name(name: str) -> str:
    name = (name or "").strip().lstrip("/")
    if not name or ".." in name.split("/"):
        raise HTTPException(400, "Invalid file name")
    return name


class ImageStorage:
    """Post and profile images in S3, addressed by object name."""

    def __init__(self, s3, settings: Settings) -> None:
        self.s3 = s3
        self.settings = settings

    def public_url(self, name: str, bucket: str) -> str:
        return f"https://{bucket}.s3.{self.settings.aws_region}.amazonaws.com/{quote(name)}"

    def signed_url(self, name: str, bucket: Optional[str] = None, expires_in: Optional[int] = None) -> str:
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket or self.settings.post_images_bucket, "Key": _clean_name(name)},
            ExpiresIn=expires_in or self.settings.signed_url_ttl_seconds,
        )

    def image_url(self, name: str, bucket: Optional[str] = None) -> Dict[str, Any]:
        """Signed URL when the store can issue one, the public object URL otherwise."""
        bucket = bucket or self.settings.post_images_bucket
        name = _clean_name(name)
        try:
            return {"url": self.signed_url(name, bucket), "signed": True}
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Could not sign %s/%s, falling back to public URL: %s", bucket, name, exc)
            return {"url": self.public_url(name, bucket), "signed": False}

    def validate_upload(self, content_type: Optional[str], size: int) -> None:
        if not content_type or not content_type.startswith(self.settings.upload_content_type_prefix):
            raise HTTPException(400, "Only image files are allowed")
        if size <= 0:
            raise HTTPException(400, "No file uploaded")
        if size > self.settings.max_upload_bytes:
            raise HTTPException(413, f"File too large (max {self.settings.max_upload_bytes} bytes)")

    def _exists(self, bucket: str, name: str) -> bool:
        try:
            self.s3.head_object(Bucket=bucket, Key=name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def upload_image(
        self,
        data: bytes,
        name: str,
        content_type: str,
        bucket: Optional[str] = None,
        *,
        overwrite: bool = False,
    ) -> Dict[str, Any]:
        bucket = bucket or self.settings.post_images_bucket
        name = _clean_name(name)
        self.validate_upload(content_type, len(data))
        try:
            if not overwrite and self._exists(bucket, name):
                raise HTTPException(409, "File already exists")
            self.s3.put_object(
                Bucket=bucket,
                Key=name,
                Body=data,
                ContentType=content_type,
                CacheControl=self.settings.upload_cache_control,
            )
        except ClientError as exc:
            err = exc.response.get("Error", {})
            raise HTTPException(500, f"S3 error: {err.get('Message', 'unknown')}") from exc
        logger.info("Stored %s/%s (%s bytes)", bucket, name, len(data))
        return {"bucket": bucket, "name": name, "size": len(data), "content_type": content_type}

    def upload_with_unique_name(self, user_id, filename: Optional[str], data: bytes, content_type: str) -> Dict[str, Any]:
        name = f"{user_id}_{now_ms()}_{uuid.uuid4().hex[:8]}.{_extension(filename, content_type)}"
        return self.upload_image(data, name, content_type)

    def upload_profile_image(self, user_id, filename: Optional[str], data: bytes, content_type: str) -> Dict[str, Any]:
        name = f"profile_{user_id}_{now_ms()}.{_extension(filename, content_type)}"
        return self.upload_image(data, name, content_type, self.settings.user_images_bucket, overwrite=True)

    def delete_image(self, name: str, bucket: Optional[str] = None) -> None:
        bucket = bucket or self.settings.post_images_bucket
        try:
            self.s3.delete_object(Bucket=bucket, Key=_clean_name(name))
        except ClientError as exc:
            err = exc.response.get("Error", {})
            raise HTTPException(500, f"S3 error: {err.get('Message', 'unknown')}") from exc

    def list_images(self, prefix: str = "", limit: int = 100, offset: int = 0, bucket: Optional[str] = None) -> List[Dict[str, Any]]:
        bucket = bucket or self.settings.post_images_bucket
        out: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {"Bucket": bucket, "Prefix": prefix or ""}
        try:
            while True:
                resp = self.s3.list_objects_v2(**kwargs)
                for obj in resp.get("Contents", []):
                    out.append({"name": obj["Key"], "size": obj.get("Size")})
                if not resp.get("IsTruncated"):
                    break
                kwargs["ContinuationToken"] = resp["NextContinuationToken"]
        except ClientError as exc:
            err = exc.response.get("Error", {})
            raise HTTPException(500, f"S3 error: {err.get('Message', 'unknown')}") from exc
        out.sort(key=lambda o: o["name"])
        return out[offset:offset + limit]
