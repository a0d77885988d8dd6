"""
File validation and loading services.

Single Responsibility: Each class handles one specific task.
"""
import asyncio
import mimetypes
import os
from pathlib import Path
from typing import Tuple, List, Sequence, Union
import logging
import aiofiles

from ..models import LoadedFile
from ...exceptions import ReadError

FileHandle = Union[str, os.PathLike]

DEFAULT_MIME_TYPE = 'application/octet-stream'


class FileValidator:
    """
    Validates files before loading.

    Responsibilities:
    - Check file existence
    - Verify file is not a directory
    - Get file size
    """

    def validate(self, file_path: FileHandle) -> Tuple[Path, int]:
        """
        Validate a file for upload.

        Args:
            file_path: Path to the file

        Returns:
            Tuple of (validated Path, file size in bytes)

        Raises:
            FileNotFoundError: If file doesn't exist
            IsADirectoryError: If path is not a regular file
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        if not path.is_file():
            raise IsADirectoryError(f"Path is not a file: {path}")

        return path, path.stat().st_size


def guess_mime_type(name: str) -> str:
    """MIME type for a file name, defaulting to application/octet-stream."""
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


class FileBufferLoader:
    """
    Loads whole files into memory for bundling.

    Uses aiofiles for non-blocking I/O; files of a batch are read
    concurrently, at most max_concurrent at a time, so a large collection
    stays under the process's open file limit. A single failing file aborts
    the whole batch with a ReadError, so the packer never sees a partial
    file set.
    """

    def __init__(self, validator: FileValidator = None, max_concurrent: int = 32):
        """
        Initialize file loader.

        Args:
            validator: File validator
            max_concurrent: Maximum number of files open at once
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._validator = validator or FileValidator()
        self._max_concurrent = max_concurrent
        self._logger = logging.getLogger('arlinks.upload.file')

    async def load_file(self, handle: FileHandle) -> LoadedFile:
        """
        Read one file.

        Args:
            handle: Path to the file

        Returns:
            LoadedFile with content, name, size and MIME type

        Raises:
            ReadError: If the file cannot be read
        """
        name = os.fspath(handle)
        try:
            path, expected_size = self._validator.validate(handle)
            async with aiofiles.open(path, 'rb') as f:
                content = await f.read()
        except (OSError, ValueError) as e:
            self._logger.error(f"Failed to read {name}: {e}")
            raise ReadError(name, e) from e

        if len(content) != expected_size:
            self._logger.warning(
                f"{path.name} changed while reading ({expected_size} -> {len(content)} bytes)"
            )

        self._logger.debug(f"Loaded {path.name} ({len(content)} bytes)")
        return LoadedFile(
            content=content,
            name=path.name,
            size=len(content),
            mime_type=guess_mime_type(path.name)
        )

    async def load_files(self, handles: Sequence[FileHandle]) -> List[LoadedFile]:
        """
        Read a batch of files concurrently.

        Args:
            handles: Paths to load

        Returns:
            One LoadedFile per handle, in input order

        Raises:
            ReadError: For the first file that failed; the batch is discarded
        """
        if not handles:
            return []

        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def load_bounded(handle: FileHandle) -> LoadedFile:
            async with semaphore:
                return await self.load_file(handle)

        tasks = [asyncio.ensure_future(load_bounded(handle)) for handle in handles]
        try:
            loaded = await asyncio.gather(*tasks)
        except ReadError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        total = sum(f.size for f in loaded)
        self._logger.info(f"Loaded {len(loaded)} files ({total / (1024 * 1024):.2f} MB)")
        return list(loaded)
