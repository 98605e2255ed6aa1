"""
Filesystem blob storage for uploaded knowledge-base files.

Layout: <root>/kb_<kb_id>/<filename>
"""

import logging
import shutil
from pathlib import Path

from ..errors import MalformedRequestError, StoreError

logger = logging.getLogger("ragserve.blobs")


class FileBlobStore:

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def kb_dir(self, kb_id: int) -> Path:
        return self.root / f"kb_{kb_id}"

    def path_for(self, kb_id: int, filename: str) -> Path:
        # Only the base name is kept so uploads cannot escape the kb directory
        name = Path(filename.replace("\\", "/")).name
        if name in ("", ".", ".."):
            raise MalformedRequestError(f"Invalid filename: {filename!r}")
        return self.kb_dir(kb_id) / name

    def write(self, kb_id: int, filename: str, data: bytes) -> Path:
        path = self.path_for(kb_id, filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StoreError(f"Failed to write blob {path}: {e}") from e
        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return path

    def read(self, kb_id: int, filename: str) -> bytes:
        path = self.path_for(kb_id, filename)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreError(f"Failed to read blob {path}: {e}") from e

    def delete(self, kb_id: int, filename: str) -> bool:
        """Remove a blob. A missing blob is a no-op returning False."""
        path = self.path_for(kb_id, filename)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Failed to delete blob {path}: {e}") from e
        return True

    def delete_kb(self, kb_id: int) -> bool:
        """Remove every blob of a knowledge base. Returns False if there were none."""
        directory = self.kb_dir(kb_id)
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise StoreError(f"Failed to delete blobs in {directory}: {e}") from e
        return True
