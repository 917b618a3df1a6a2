"""
File Upload Utility - validate assignment uploads before they go to Drive.

Students submit code, notebooks, documents or archives. The portal never
looks inside; it only checks name, type and size.
"""

from typing import Tuple
from fastapi import UploadFile, status

from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import ValidationError


ALLOWED_EXTENSIONS = {
    '.pdf', '.docx', '.doc', '.txt', '.md',
    '.py', '.ipynb', '.r', '.sql', '.js', '.ts', '.html', '.css', '.java', '.kt', '.dart',
    '.csv', '.xlsx', '.zip', '.png', '.jpg', '.jpeg',
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def validate_upload(filename: str, content: bytes, max_size_mb: int) -> None:
    """
    Raises:
        ValidationError when the file has no name, a disallowed type,
        no content, or is larger than max_size_mb
    """
    if not filename:
        raise ValidationError("No filename provided")

    ext = get_file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"Unsupported file type '{ext}'")

    if not content:
        raise ValidationError("Uploaded file is empty")

    if len(content) > max_size_mb * 1024 * 1024:
        raise ValidationError(
            f"File too large. Maximum size: {max_size_mb}MB",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        )


def read_upload(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Read and validate an uploaded file. Blocking; call from a sync handler.

    Returns:
        Tuple of (content, filename, mime_type)
    """
    content = file.file.read()
    validate_upload(file.filename or "", content, get_settings().max_upload_mb)
    return content, file.filename, file.content_type or "application/octet-stream"


def get_supported_formats() -> dict:
    """Get info about accepted upload formats."""
    return {
        "supported_extensions": sorted(ALLOWED_EXTENSIONS),
        "max_size_mb": get_settings().max_upload_mb
    }
