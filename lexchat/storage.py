"""
Local-disk object storage for uploaded documents.
"""
import os
from pathlib import Path
from typing import Optional

from .interfaces import ObjectStorage
from .logging_config import logger


def storage_key(user_id: str, chat_id: str, document_id: str, filename: str) -> str:
    return f"{user_id}/{chat_id}/{document_id}/{os.path.basename(filename)}"


class LocalFileStorage(ObjectStorage):

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key!r}")
        return path

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Stored object", key=key, size=len(data))

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Object already gone", key=key)
