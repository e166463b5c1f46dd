from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from vibeshare.core.config import Settings, settings as default_settings
from vibeshare.core.errors import MediaStoreError, UploadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MediaUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def kind(self) -> str:
        return self.content_type.split("/", 1)[0].strip().lower()


@dataclass(frozen=True, slots=True)
class MediaReference:
    url: str
    deletable_id: str
    kind: str


class MediaStore(Protocol):
    async def store(self, upload: MediaUpload) -> MediaReference: ...

    async def delete(self, deletable_id: str) -> None: ...


def extract_deletable_id(url: str | None) -> str | None:
    """Last path segment of a media URL without its extension."""
    if not url:
        return None
    path = urlparse(url).path or url
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    deletable_id = segment.split(".", 1)[0]
    return deletable_id or None


async def delete_media_quietly(store: MediaStore, deletable_id: str | None) -> None:
    """Delete media without letting a store failure escape; failures are logged."""
    if not deletable_id:
        return
    try:
        await store.delete(deletable_id)
    except Exception:
        logger.exception("Media delete failed for deletable_id=%s", deletable_id)


class S3MediaStore:
    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        folder: str,
        public_base_url: str,
        region: str = "",
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._folder = folder.strip("/")
        self._public_base_url = public_base_url.rstrip("/")
        self._region = region
        self._bucket_checked = False

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "S3MediaStore":
        cfg = cfg or default_settings
        client = boto3.client(
            "s3",
            endpoint_url=cfg.s3_endpoint_url,
            aws_access_key_id=cfg.s3_access_key,
            aws_secret_access_key=cfg.s3_secret_key,
            region_name=cfg.s3_region,
            config=Config(signature_version="s3v4"),
        )
        public_base = cfg.s3_public_base_url.strip() or f"{cfg.s3_endpoint_url.rstrip('/')}/{cfg.s3_bucket}"
        return cls(
            client,
            bucket=cfg.s3_bucket,
            folder=cfg.media_folder,
            public_base_url=public_base,
            region=cfg.s3_region,
        )

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return

        try:
            self._client.head_bucket(Bucket=self._bucket)
            self._bucket_checked = True
            return
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", "")).lower()
            if code not in {"404", "nosuchbucket", "notfound"}:
                raise

        create_args: dict[str, Any] = {"Bucket": self._bucket}
        region = str(self._region or "").strip()
        if region and region != "us-east-1":
            create_args["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self._client.create_bucket(**create_args)
        self._bucket_checked = True

    def _object_prefix(self, deletable_id: str) -> str:
        return f"{self._folder}/{deletable_id}" if self._folder else deletable_id

    def _public_url(self, object_key: str) -> str:
        return f"{self._public_base_url}/{object_key}"

    def _store_sync(self, upload: MediaUpload) -> MediaReference:
        deletable_id = uuid.uuid4().hex
        ext = mimetypes.guess_extension(upload.content_type) or ""
        object_key = f"{self._object_prefix(deletable_id)}{ext}"
        try:
            self._ensure_bucket()
            self._client.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=upload.data,
                ContentType=upload.content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UploadError(f"Upload of {upload.filename!r} failed") from exc
        return MediaReference(url=self._public_url(object_key), deletable_id=deletable_id, kind=upload.kind)

    def _delete_sync(self, deletable_id: str) -> None:
        prefix = self._object_prefix(deletable_id)
        try:
            listing = self._client.list_objects_v2(Bucket=self._bucket, Prefix=prefix)
            keys = [
                str(obj["Key"])
                for obj in listing.get("Contents") or []
                if str(obj.get("Key", "")) == prefix or str(obj.get("Key", "")).startswith(prefix + ".")
            ]
            if keys:
                self._client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
                )
        except (BotoCoreError, ClientError) as exc:
            raise MediaStoreError(f"Delete of media {deletable_id!r} failed") from exc
        logger.info("Deleted %s media object(s) for deletable_id=%s", len(keys), deletable_id)

    async def store(self, upload: MediaUpload) -> MediaReference:
        return await run_in_threadpool(self._store_sync, upload)

    async def delete(self, deletable_id: str) -> None:
        await run_in_threadpool(self._delete_sync, deletable_id)
