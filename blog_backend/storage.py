"""
Asset storage for post images: S3-compatible object storage and an in-memory
test double, plus the image preparation applied before every upload.
"""

from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from blog_backend import errors

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


class AssetStore(Protocol):
    """Defines the operations the post lifecycle needs from the media host."""

    def upload(self, data: bytes, folder: str, content_type: str) -> str:
        ...

    def delete(self, asset_id: str) -> None:
        ...


@dataclass
class ImageUpload:
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


def asset_id_from_url(url: str, folder: str) -> str:
    """
    Derive the store identifier from a retrieval URL: the trailing path
    segment with its extension stripped, under ``folder``.
    """
    segment = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
    public_id = segment.split(".", 1)[0]
    return f"{folder}/{public_id}"


def prepare_image(upload: ImageUpload, max_width: int, max_height: int) -> tuple[bytes, str]:
    """
    Validate an uploaded image and scale it down to fit ``max_width`` x
    ``max_height``. Returns the bytes to store and their content type.
    """
    if upload.filename and "." in upload.filename:
        extension = upload.filename.rsplit(".", 1)[-1].lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise errors.ValidationError(
                f"Unsupported image type: .{extension}"
            )

    try:
        image = Image.open(io.BytesIO(upload.data))
        image_format = image.format
        # Decode the pixels now; open() only reads the header.
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise errors.ValidationError("Uploaded file is not a readable image") from exc

    if image_format not in ALLOWED_IMAGE_FORMATS:
        raise errors.ValidationError(f"Unsupported image format: {image_format}")
    content_type = ALLOWED_IMAGE_FORMATS[image_format]

    if getattr(image, "is_animated", False):
        return upload.data, content_type
    if image.width <= max_width and image.height <= max_height:
        return upload.data, content_type

    image.thumbnail((max_width, max_height))
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue(), content_type


@dataclass
class InMemoryAssetStore:
    """Test double for the media host."""

    base_url: str = "https://assets.example.test"
    objects: dict = field(default_factory=dict)
    deleted: list = field(default_factory=list)

    def upload(self, data: bytes, folder: str, content_type: str) -> str:
        key = f"{folder}/{uuid.uuid4().hex}"
        self.objects[key] = (data, content_type)
        return f"{self.base_url}/{key}"

    def delete(self, asset_id: str) -> None:
        self.objects.pop(asset_id, None)
        self.deleted.append(asset_id)

    def reset(self) -> None:
        self.objects.clear()
        self.deleted.clear()


@dataclass
class S3AssetStore:
    """
    Asset store on any S3-compatible object storage. Objects are keyed
    ``<folder>/<hex id>`` so the retrieval URL maps straight back to the key.
    """

    bucket: str
    public_base_url: str
    region: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def upload(self, data: bytes, folder: str, content_type: str) -> str:
        key = f"{folder}/{uuid.uuid4().hex}"
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise errors.UpstreamAssetError(f"Image upload failed: {exc}") from exc
        logger.info("Uploaded asset %s (%d bytes)", key, len(data))
        return f"{self.public_base_url.rstrip('/')}/{key}"

    def delete(self, asset_id: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=asset_id)
        except (BotoCoreError, ClientError) as exc:
            raise errors.UpstreamAssetError(f"Image delete failed: {exc}") from exc
