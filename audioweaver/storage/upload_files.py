"""On-disk storage for uploaded source documents."""

import os
import time
import uuid
from typing import BinaryIO, Tuple


class UploadTooLarge(Exception):
    pass


class UploadFileStore:
    """Writes uploaded PDFs under unique names, enforcing a size cap."""

    def __init__(self, base_dir: str, max_bytes: int):
        self._base_dir = os.path.abspath(base_dir)
        os.makedirs(self._base_dir, exist_ok=True)
        self._max_bytes = max_bytes

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def unique_path(self, original_name: str) -> str:
        safe_name = os.path.basename(original_name or "") or "document.pdf"
        prefix = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
        return os.path.join(self._base_dir, f"{prefix}-{safe_name}")

    def save_stream(self, src: BinaryIO, original_name: str, chunk_size: int = 1024 * 1024) -> Tuple[str, int]:
        """Copy a file object to disk. Returns (path, size).

        Raises UploadTooLarge and removes the partial file once max_bytes is exceeded.
        """
        path = self.unique_path(original_name)
        total = 0
        with open(path, "wb") as dst:
            while True:
                chunk = src.read(chunk_size)
                if not chunk:
                    break
                total += len(chunk)
                if total > self._max_bytes:
                    break
                dst.write(chunk)
        if total > self._max_bytes:
            os.remove(path)
            raise UploadTooLarge(f"File too large (max {self._max_bytes // (1024 * 1024)} MB)")
        return path, total

    def remove(self, path: str) -> None:
        if os.path.isfile(path):
            os.remove(path)
