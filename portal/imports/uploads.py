from __future__ import annotations

from typing import Protocol

from portal.models import ImportKind

CHUNK_SIZE = 64 * 1024
_MB = 1024 * 1024

UPLOAD_LIMITS: dict[ImportKind, int] = {
    ImportKind.WORKFLOWS: 8 * _MB,
    ImportKind.USERS: 20 * _MB,
    ImportKind.BOOK_WORKFLOWS: 20 * _MB,
}


class UploadTooLargeError(ValueError):
    def __init__(self, kind: ImportKind, max_bytes: int) -> None:
        super().__init__(
            f"Uploaded file exceeds maximum size of {describe_upload_limit(max_bytes)}."
        )
        self.kind = kind
        self.max_bytes = max_bytes


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


def describe_upload_limit(max_bytes: int) -> str:
    if max_bytes >= _MB and max_bytes % _MB == 0:
        return f"{max_bytes // _MB} MB"
    return "1 byte" if max_bytes == 1 else f"{max_bytes} bytes"


async def read_csv_upload(upload: AsyncReadable, kind: ImportKind) -> bytes:
    """Read an upload in chunks, giving up as soon as it passes the kind's cap."""
    max_bytes = UPLOAD_LIMITS[kind]
    buffer = bytearray()
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise UploadTooLargeError(kind, max_bytes)
    return bytes(buffer)
