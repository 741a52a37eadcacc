"""
File-bytes storage collaborator.

The engine never keeps file bytes in the database. Uploads are handed to a
FileStorage, which returns the metadata recorded on a SubmissionFile row.

Example:
    >>> storage = LocalFileStorage(upload_dir="uploads")
    >>> stored = storage.store("essay.pdf", pdf_bytes)
    >>> stored.stored_filename, stored.size, stored.mime_type, stored.hash
"""

import os
import hashlib
import logging
import mimetypes
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import BaseModel

from .exceptions import DependencyFailureError, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))


class StoredFile(BaseModel):
    """Metadata returned by storage for one stored upload."""
    original_filename: str
    stored_filename: str
    size: int
    mime_type: str
    hash: str


class FileStorage(Protocol):
    def store(self, filename: str, data: bytes) -> StoredFile:
        ...

    def delete(self, stored_filename: str) -> None:
        ...


class LocalFileStorage:
    """
    Stores uploads on the local filesystem.

    Args:
        upload_dir: Directory path where uploaded files will be stored.
        max_file_size: Maximum allowed file size in bytes (default: 50MB).
    """

    def __init__(self, upload_dir: str = UPLOAD_DIR, max_file_size: int = MAX_UPLOAD_BYTES):
        self.upload_dir = Path(upload_dir).resolve()
        self.max_file_size = max_file_size
        mimetypes.init()

    def store(self, filename: str, data: bytes) -> StoredFile:
        """
        Write an upload under a unique, sanitized name.

        Raises:
            ValidationError: If the file exceeds the size limit.
            DependencyFailureError: If the file cannot be written.
        """
        if len(data) > self.max_file_size:
            raise ValidationError(
                f"File size {len(data)} exceeds maximum allowed size of {self.max_file_size} bytes",
                field="files",
            )
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            file_path = self._create_unique(filename, data)
        except OSError as e:
            logger.error(f"Failed to save file {filename}: {e}")
            raise DependencyFailureError("file_storage", f"Failed to save file {filename}") from e

        logger.debug(f"Saved file to {file_path}")
        return StoredFile(
            original_filename=filename,
            stored_filename=file_path.name,
            size=len(data),
            mime_type=mimetypes.guess_type(filename)[0] or 'application/octet-stream',
            hash=hashlib.sha256(data).hexdigest(),
        )

    def delete(self, stored_filename: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        try:
            (self.upload_dir / stored_filename).unlink(missing_ok=True)
        except OSError as e:
            raise DependencyFailureError("file_storage", f"Failed to delete file {stored_filename}") from e

    def _create_unique(self, filename: str, data: bytes) -> Path:
        """Write to the first free name, claiming it atomically with exclusive create."""
        for file_path in self._candidate_paths(filename):
            try:
                with open(file_path, 'xb') as f:
                    f.write(data)
            except FileExistsError:
                continue
            return file_path

    def _candidate_paths(self, filename: str) -> Iterator[Path]:
        safe_name = self._get_safe_filename(filename)
        yield self.upload_dir / safe_name

        name, ext = os.path.splitext(safe_name)
        counter = 1
        while True:
            yield self.upload_dir / f"{name}_{counter}{ext}"
            counter += 1

    @staticmethod
    def _get_safe_filename(filename: str) -> str:
        """
        Return a safe version of the filename.

        Example:
            >>> LocalFileStorage._get_safe_filename("My Essay (draft).pdf")
            'My_Essay__draft_.pdf'
        """
        if not filename or not isinstance(filename, str):
            return 'unnamed_file'

        keep_chars = ('.', '_', '-')
        safe_chars = []
        for c in filename:
            if c.isalnum() or c in keep_chars:
                safe_chars.append(c)
            elif c.isspace() or not c.isprintable() or c in '*/\\:!@#$%^&()+=[]{};\',~`|"<>?':
                safe_chars.append('_')

        safe_name = ''.join(safe_chars).strip('_.- ')
        if not safe_name:
            return 'unnamed_file'

        max_length = 255
        if len(safe_name) > max_length:
            name, ext = os.path.splitext(safe_name)
            name = name[:max_length - len(ext) - 1]
            safe_name = f"{name}{ext}"
        return safe_name
