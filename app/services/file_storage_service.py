"""
File storage service for book attachments.

Each book owns a directory ``<FILE_STORAGE_PATH>/<book_id>/``; a slot
(``cover`` or ``content``) is stored as ``<slot><ext>``. Writes go to a
temporary file first and are moved into place with ``os.replace``, so a
reader never sees a half-written blob.
"""
import mimetypes
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional
from uuid import uuid4

from app.core.config import settings
from app.core.exceptions import FileStorageError, NotFoundError, ValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024


class FileSlot(str, Enum):
    """Logical attachment slot of a book."""

    COVER = "cover"
    CONTENT = "content"


@dataclass(frozen=True)
class StoredBlob:
    """A blob resolved for download."""

    path: Path
    filename: str
    media_type: str
    download_name: Optional[str] = None


class FileStorageService:
    """
    Stores, resolves and deletes blobs per (book id, slot).
    """

    def __init__(self, base_path: Optional[Path] = None, max_size: Optional[int] = None):
        self.base_path = Path(base_path or settings.FILE_STORAGE_PATH)
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _book_dir(self, book_id: str) -> Path:
        # Book ids are server-generated, but never let one escape the root
        safe_id = Path(book_id).name
        if not safe_id or safe_id in (".", ".."):
            raise ValidationError(f"Invalid book id '{book_id}'", field="id")
        return self.base_path / safe_id

    def save_blob(self, book_id: str, slot: FileSlot, source: BinaryIO, original_filename: Optional[str]) -> str:
        """
        Store a blob for a book slot.

        Older blobs of the same slot are left in place; call ``prune_slot``
        once the new filename has been committed.

        Args:
            book_id: Owning book
            slot: Attachment slot
            source: Readable binary stream
            original_filename: Client filename, used only for its extension

        Returns:
            The stored filename (``<slot><ext>``)
        """
        book_dir = self._book_dir(book_id)
        filename = f"{slot.value}{self._sanitize_extension(original_filename)}"
        final_path = book_dir / filename
        temp_path = book_dir / f".{filename}.{uuid4().hex}.tmp"

        try:
            book_dir.mkdir(parents=True, exist_ok=True)
            written = 0
            with temp_path.open("wb") as buffer:
                while True:
                    chunk = source.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_size:
                        raise ValidationError(
                            f"File exceeds the maximum size of {self.max_size} bytes",
                            field="file",
                            context={"max_size": self.max_size},
                        )
                    buffer.write(chunk)
            if written == 0:
                raise ValidationError("Uploaded file is empty", field="file")
            os.replace(temp_path, final_path)
        except ValidationError:
            temp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to store {slot.value} for book {book_id}: {e}")
            raise FileStorageError(context={"book_id": book_id, "slot": slot.value})

        logger.info(f"Stored {slot.value} for book {book_id}: {filename} ({written} bytes)")
        return filename

    def prune_slot(self, book_id: str, slot: FileSlot, keep: str) -> List[str]:
        """Delete every blob of ``slot`` except ``keep``. Returns the removed filenames."""
        book_dir = self._book_dir(book_id)
        if not book_dir.exists():
            return []

        removed = []
        for path in book_dir.glob(f"{slot.value}.*"):
            if path.name != keep and path.is_file():
                path.unlink(missing_ok=True)
                removed.append(path.name)
        # A slot without an extension has no dot in its name
        bare = book_dir / slot.value
        if bare.name != keep and bare.is_file():
            bare.unlink(missing_ok=True)
            removed.append(bare.name)

        if removed:
            logger.info(f"Pruned old {slot.value} blobs for book {book_id}: {removed}")
        return removed

    def remove_blob(self, book_id: str, filename: str) -> None:
        path = self._book_dir(book_id) / Path(filename).name
        path.unlink(missing_ok=True)

    def get_blob(self, book_id: str, filename: Optional[str]) -> StoredBlob:
        """
        Resolve a stored blob for streaming.

        Raises:
            NotFoundError: If no filename is recorded or the file is missing
        """
        if not filename:
            raise NotFoundError("file")

        path = self._book_dir(book_id) / Path(filename).name
        if not path.is_file():
            logger.warning(f"Referenced blob missing on disk: {path}")
            raise NotFoundError("file", filename)

        media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return StoredBlob(path=path, filename=path.name, media_type=media_type)

    def delete_book_files(self, book_id: str) -> bool:
        """
        Delete all files associated with a book.

        Returns:
            True if a directory was removed
        """
        book_dir = self._book_dir(book_id)
        if not book_dir.exists():
            return False

        try:
            shutil.rmtree(book_dir)
        except OSError as e:
            logger.error(f"Failed to delete files of book {book_id}: {e}")
            raise FileStorageError(context={"book_id": book_id})

        logger.info(f"Deleted file directory: {book_dir}")
        return True

    def _sanitize_extension(self, filename: Optional[str]) -> str:
        """
        Keep only a safe extension from a client filename.

        Args:
            filename: The original filename

        Returns:
            ``.ext`` in lower case, or an empty string
        """
        if not filename:
            return ""

        suffix = Path(filename).suffix.lower()
        safe_chars = set("abcdefghijklmnopqrstuvwxyz0123456789")
        ext = "".join(c for c in suffix[1:] if c in safe_chars)[:10]
        return f".{ext}" if ext else ""


file_storage_service = FileStorageService()
