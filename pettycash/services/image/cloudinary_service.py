"""
Attachment Storage using Cloudinary

DESIGN DECISION: Attachment images live in Cloudinary because:
1. Reliable object storage with a public URL per image
2. Simple upload/destroy API
3. Free tier sufficient for a petty cash book

This service handles:
1. Preparing images (decode inline data URIs, shrink, re-encode as JPEG)
2. Uploading under {folder}/{identity}/{timestamp}-{random}
3. Recognizing our own URLs and deleting the objects behind them

Inline data URIs are never uploaded or deleted implicitly - they stay in
the transaction record until the user uploads them.
"""

import asyncio
import base64
import binascii
import re
import time
from io import BytesIO
from typing import Optional, Union

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError

from pettycash.audit import get_logger
from pettycash.config import get_settings
from pettycash.models.ledger import random_suffix
from pettycash.services.storage.interface import AttachmentStorageInterface


# https://res.cloudinary.com/<cloud>/image/upload/[v<version>/]<public_id>.<ext>
CLOUDINARY_URL_PATTERN = re.compile(
    r"^https?://res\.cloudinary\.com/(?P<cloud>[^/]+)/image/upload/"
    r"(?:v\d+/)?(?P<public_id>.+?)(?:\.[A-Za-z0-9]+)?$"
)

logger = get_logger(__name__)


class AttachmentError(Exception):
    """Base exception for attachment errors."""
    pass


class AttachmentUploadError(AttachmentError):
    """Failed to upload an attachment to Cloudinary."""
    pass


class AttachmentDeleteError(AttachmentError):
    """Failed to delete an attachment from Cloudinary."""
    pass


class InvalidAttachmentError(AttachmentError):
    """The attachment is not a decodable image."""
    pass


def is_inline_attachment(ref: str) -> bool:
    """Whether a reference is an inline data URI."""
    return ref.startswith("data:")


def decode_data_uri(ref: str) -> bytes:
    """Decode a base64 data URI (data:image/jpeg;base64,...) to bytes."""
    header, sep, payload = ref.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise InvalidAttachmentError("Not a base64 data URI")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidAttachmentError(f"Invalid base64 payload: {e}")


def encode_data_uri(blob: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(blob).decode('ascii')}"


def public_id_from_url(url: str) -> Optional[str]:
    """Extract the Cloudinary public id from a delivery URL, if it is one."""
    match = CLOUDINARY_URL_PATTERN.match(url)
    return match.group("public_id") if match else None


def prepare_attachment(
    source: Union[bytes, str],
    max_dimension: Optional[int] = None,
    quality: Optional[int] = None,
) -> bytes:
    """
    Turn raw bytes or an inline data URI into a compact JPEG.

    The longest side is capped at max_dimension; the image is never
    enlarged. Transparency is flattened onto white.
    """
    app_settings = get_settings().app
    max_dimension = max_dimension or app_settings.max_attachment_dimension
    quality = quality or app_settings.attachment_jpeg_quality

    if isinstance(source, str):
        if not is_inline_attachment(source):
            raise InvalidAttachmentError("Only inline data URIs can be prepared")
        source = decode_data_uri(source)

    try:
        img = Image.open(BytesIO(source))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidAttachmentError(f"Could not read image: {e}")

    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    img.thumbnail((max_dimension, max_dimension))

    out = BytesIO()
    img.save(out, format="JPEG", quality=quality)
    return out.getvalue()


class CloudinaryAttachmentStorage(AttachmentStorageInterface):
    """
    Attachment object storage backed by Cloudinary.

    Flow:
    1. Receive prepared JPEG bytes and the uploader's identity
    2. Upload under a unique public id
    3. Return the secure URL stored in the transaction record
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def generate_public_id(self, identity: str) -> str:
        """
        Generate a unique public ID for an attachment.

        Format: {folder}/{identity}/{timestamp_ms}-{random}
        """
        timestamp_ms = int(time.time() * 1000)
        return f"{self._settings.attachment_folder}/{identity}/{timestamp_ms}-{random_suffix()}"

    def is_remote_attachment(self, ref: str) -> bool:
        return public_id_from_url(ref) is not None

    async def upload_attachment(self, blob: bytes, identity: str) -> str:
        """
        Upload an image and return its public URL.

        Raises:
            AttachmentUploadError: If upload fails or no URL comes back
        """
        self._configure()
        public_id = self.generate_public_id(identity)

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                blob,
                public_id=public_id,
                resource_type="image",
                format="jpg",
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            raise AttachmentUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise AttachmentUploadError(f"Failed to upload image: {e}")

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise AttachmentUploadError("No URL returned from Cloudinary")
        return url

    async def delete_attachment(self, url: str) -> None:
        """
        Delete the object behind a Cloudinary URL.

        Inline data URIs and foreign URLs are skipped.
        """
        public_id = public_id_from_url(url)
        if public_id is None:
            if not is_inline_attachment(url):
                logger.warning("attachment_url_not_recognized", url=url)
            return

        self._configure()
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                public_id,
                resource_type="image",
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise AttachmentDeleteError(f"Cloudinary error: {e}")
        except Exception as e:
            raise AttachmentDeleteError(f"Failed to delete image: {e}")

        # "not found" means the object is already gone
        if result.get("result") not in ("ok", "not found"):
            raise AttachmentDeleteError(f"Unexpected destroy result: {result}")
