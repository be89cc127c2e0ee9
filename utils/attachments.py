"""Attachment metadata for complaint uploads.

Binary content is not persisted here; each upload is reduced to the metadata
row the object store collaborator needs (name, MIME type, size, path, URL).
"""
import os
import time
from typing import Dict, Iterable, List

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

DEFAULT_BASE_URL = "https://citizenconnect.gov.rw"
DEFAULT_PATH_PREFIX = "/uploads"


def _stream_size(file: FileStorage) -> int:
    if file.content_length:
        return int(file.content_length)
    stream = file.stream
    try:
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
        return size
    except (AttributeError, OSError):
        return 0


def collect_uploads(files) -> List[FileStorage]:
    """Pick file uploads out of a request's files mapping (``file-*`` keys or ``files``)."""
    if files is None:
        return []
    if hasattr(files, "items") and hasattr(files, "getlist"):
        collected: List[FileStorage] = []
        for key in files.keys():
            if key.startswith("file-") or key == "files":
                collected.extend(f for f in files.getlist(key) if f and f.filename)
        return collected
    return [f for f in files if f and getattr(f, "filename", None)]


def build_attachment_metadata(
    file: FileStorage,
    base_url: str = DEFAULT_BASE_URL,
    path_prefix: str = DEFAULT_PATH_PREFIX,
) -> Dict:
    original_name = file.filename or "upload"
    safe_name = secure_filename(original_name) or "upload"
    stored_name = f"{int(time.time() * 1000)}-{safe_name}"
    file_path = f"{path_prefix.rstrip('/')}/{stored_name}"
    return {
        "file_name": original_name,
        "file_type": file.mimetype or "application/octet-stream",
        "file_size": _stream_size(file),
        "file_path": file_path,
        "file_url": f"{base_url.rstrip('/')}{file_path}",
    }


def describe_uploads(files: Iterable[FileStorage], base_url: str = DEFAULT_BASE_URL, path_prefix: str = DEFAULT_PATH_PREFIX) -> List[Dict]:
    return [build_attachment_metadata(f, base_url=base_url, path_prefix=path_prefix) for f in files]
