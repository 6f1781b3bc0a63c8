"""
Local Content Storage

Layout: a flat directory of <generated_id>.<ext> files under the configured
base path. No sub-directory sharding.

Writes go to a hidden temporary file in the same directory and are moved
into place with os.replace(), so an interrupted copy never leaves a file
under the final name. Errors are reported as StorageWriteError with kind
io | permission | unexpected; the API maps permission to 403.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from pdf_processor.core.exceptions import (
    ConfigurationError,
    StorageErrorKind,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

_COPY_BUFFER_SIZE = 1024 * 1024


def resolve_base_directory(configured_path: str | None) -> Path:
    """Return the absolute storage directory, or fail if it is not configured."""
    if not configured_path:
        logger.warning("File storage path is not configured.")
        raise ConfigurationError("File storage path is not configured.")
    return Path(configured_path).expanduser().resolve()


class LocalFileStorage:
    """Filesystem content storage. Stateless; safe for concurrent use."""

    async def write(
        self,
        base_directory: Path,
        generated_name: str,
        data: bytes | BinaryIO,
    ) -> str:
        """
        Persist ``data`` as ``base_directory/generated_name``.

        Creates the base directory if needed. Returns the absolute path.
        """
        loop = asyncio.get_event_loop()
        try:
            path = await loop.run_in_executor(None, self._write_sync, base_directory, generated_name, data)
        except PermissionError as exc:
            logger.error("Storage write denied | dir=%s name=%s error=%s", base_directory, generated_name, exc)
            raise StorageWriteError(f"Permission denied writing {generated_name}", StorageErrorKind.PERMISSION) from exc
        except OSError as exc:
            logger.error("Storage write I/O error | dir=%s name=%s error=%s", base_directory, generated_name, exc)
            raise StorageWriteError(f"I/O error writing {generated_name}", StorageErrorKind.IO) from exc
        except Exception as exc:
            logger.exception("Unexpected storage write failure | dir=%s name=%s", base_directory, generated_name)
            raise StorageWriteError(f"Unexpected error writing {generated_name}", StorageErrorKind.UNEXPECTED) from exc

        logger.info("File stored | path=%s", path)
        return path

    @staticmethod
    def _write_sync(base_directory: Path, generated_name: str, data: bytes | BinaryIO) -> str:
        """Blocking write; runs in the thread executor."""
        base_directory.mkdir(parents=True, exist_ok=True)
        destination = base_directory / generated_name

        fd, tmp_name = tempfile.mkstemp(prefix=f".{generated_name}.", suffix=".part", dir=base_directory)
        try:
            with os.fdopen(fd, "wb") as tmp:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    tmp.write(data)
                else:
                    shutil.copyfileobj(data, tmp, _COPY_BUFFER_SIZE)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, destination)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        return str(destination.resolve())

    async def delete(self, path: str) -> bool:
        """Remove a stored file. Returns False if it was already gone."""
        def _delete() -> bool:
            try:
                os.unlink(path)
            except FileNotFoundError:
                return False
            return True

        loop = asyncio.get_event_loop()
        deleted = await loop.run_in_executor(None, _delete)
        if deleted:
            logger.info("File deleted | path=%s", path)
        return deleted

    async def exists(self, path: str) -> bool:
        return os.path.isfile(path)
