"""SHA-256 checksums for packaged content."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Union

CHUNK_SIZE = 65536


def calculate_checksum(content: Union[bytes, str]) -> str:
    """Return the lowercase hex SHA-256 digest of ``content``.

    Text is encoded as UTF-8 before hashing, so a string and its UTF-8
    bytes produce the same checksum.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def calculate_file_checksum(path: Path) -> str:
    """Return the SHA-256 digest of a file's bytes.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
