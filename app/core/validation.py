"""
Input validation for uploads and catalog fields
"""
import re
import logging
from typing import List
from pathlib import Path

logger = logging.getLogger(__name__)

# Audio file extensions accepted by the upload routes
ALLOWED_AUDIO_EXTENSIONS = ['.mp3', '.wav', '.m4a', '.flac', '.aac', '.ogg']


class ValidationError(Exception):
    """Raised when client-supplied input is rejected"""
    pass


def validate_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize a client filename. The result is only ever used as a hint
    (extension, readable suffix), never as the storage identity.

    Raises:
        ValidationError: If nothing usable is left after sanitization
    """
    if not filename:
        raise ValidationError("Filename cannot be empty")

    # Remove null bytes and control characters
    sanitized = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', filename)

    # Replace path separators and shell-hostile characters
    sanitized = re.sub(r'[<>:"/\\|?*\s]', '_', sanitized)
    sanitized = sanitized.replace('..', '_')

    if len(sanitized) > max_length:
        name, ext = sanitized.rsplit('.', 1) if '.' in sanitized else (sanitized, '')
        max_name_length = max_length - len(ext) - 1 if ext else max_length
        sanitized = f"{name[:max_name_length]}.{ext}" if ext else name[:max_length]

    if not sanitized.strip('_.'):
        raise ValidationError("Filename becomes empty after sanitization")

    return sanitized


def validate_file_extension(filename: str, allowed_extensions: List[str]) -> str:
    """
    Validate file extension against allowed list

    Raises:
        ValidationError: If extension is not allowed
    """
    extension = Path(filename).suffix.lower()

    if extension not in allowed_extensions:
        logger.warning(f"Blocked file upload with disallowed extension: {extension}")
        raise ValidationError(f"File type not allowed. Allowed types: {', '.join(allowed_extensions)}")

    return filename


def validate_file_size(file_size: int, max_size_mb: int = 100) -> bool:
    """
    Validate file size

    Raises:
        ValidationError: If the file is empty or too large
    """
    if file_size == 0:
        raise ValidationError("Uploaded file is empty")

    max_size_bytes = max_size_mb * 1024 * 1024
    if file_size > max_size_bytes:
        logger.warning(f"File size {file_size} exceeds limit {max_size_bytes}")
        raise ValidationError(f"File size exceeds maximum allowed size of {max_size_mb}MB")

    return True


def validate_path_safety(file_path: str, base_directory: str) -> str:
    """
    Validate that a file path stays within base directory

    Returns:
        Resolved safe path

    Raises:
        ValidationError: If path is unsafe
    """
    base_path = Path(base_directory).resolve()
    target_path = Path(file_path).resolve()

    try:
        target_path.relative_to(base_path)
    except ValueError:
        logger.warning(f"Path traversal attempt: {file_path} outside {base_directory}")
        raise ValidationError("Path is outside allowed directory")

    return str(target_path)


def sanitize_user_input(input_str: str, max_length: int = 200) -> str:
    """Strip control characters and markup-injection patterns from a free-text field."""
    if not input_str:
        return ""

    sanitized = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]', '', input_str)
    sanitized = sanitized[:max_length]

    dangerous_patterns = [
        r'<script[^>]*>.*?</script>',
        r'javascript:',
        r'on\w+\s*=',
        r'<iframe[^>]*>',
    ]
    for pattern in dangerous_patterns:
        sanitized = re.sub(pattern, '', sanitized, flags=re.IGNORECASE | re.DOTALL)

    return sanitized.strip()
