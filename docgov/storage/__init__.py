"""
Object storage for document files
"""

from docgov.storage.client import (
    check_storage,
    delete_file,
    get_presigned_url,
    init_minio,
    upload_file,
)

__all__ = [
    "check_storage",
    "delete_file",
    "get_presigned_url",
    "init_minio",
    "upload_file",
]
