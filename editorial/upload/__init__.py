"""
Editorial Portal - Attachment Uploads
"""

from editorial.upload.gateway import (
    UploadGateway,
    UploadedFile,
    BulkUploadResult,
    OrphanCleanupResult,
    validate_file,
    resource_type_for,
    generate_public_id,
)
from editorial.upload.storage import LocalMediaStorage

__all__ = [
    "UploadGateway",
    "UploadedFile",
    "BulkUploadResult",
    "OrphanCleanupResult",
    "validate_file",
    "resource_type_for",
    "generate_public_id",
    "LocalMediaStorage",
]
