"""Attachment image services."""

from pettycash.services.image.cloudinary_service import (
    AttachmentDeleteError,
    AttachmentError,
    AttachmentUploadError,
    CloudinaryAttachmentStorage,
    InvalidAttachmentError,
    decode_data_uri,
    encode_data_uri,
    is_inline_attachment,
    prepare_attachment,
    public_id_from_url,
)

__all__ = [
    "AttachmentDeleteError",
    "AttachmentError",
    "AttachmentUploadError",
    "CloudinaryAttachmentStorage",
    "InvalidAttachmentError",
    "decode_data_uri",
    "encode_data_uri",
    "is_inline_attachment",
    "prepare_attachment",
    "public_id_from_url",
]
