"""
Local save of downloaded documents.

This is the only module that writes downloaded payloads to disk.
"""

import mimetypes
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .formatting import format_file_size
from .utils import sanitize_file_name, timing_context


class DownloadHandler:
    """Saves binary payloads into a download directory."""

    def __init__(self, download_dir: Union[str, Path]):
        self.download_dir = Path(download_dir)

    def save(self, content: bytes, content_type: Optional[str], file_name: str) -> Path:
        """
        Save a payload under ``file_name`` in the download directory.

        The target name is claimed first. The payload is then written to a
        transient file next to it and moved into place. The transient file
        is always removed, and the claim is released if writing or moving
        fails.

        Args:
            content: Binary payload
            content_type: MIME type of the payload, used to add a missing extension
            file_name: Name to save under (directory parts are stripped)

        Returns:
            Path of the saved file
        """
        self.download_dir.mkdir(parents=True, exist_ok=True)
        target = self._claim_target(self._with_extension(sanitize_file_name(file_name), content_type))

        with timing_context(f"save_download(file={target.name})"):
            transient = None
            try:
                fd, transient = tempfile.mkstemp(dir=self.download_dir, prefix=".download-", suffix=".part")
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                os.replace(transient, target)
            except OSError:
                # Release the claimed name
                if target.exists():
                    target.unlink()
                raise
            finally:
                if transient is not None and os.path.exists(transient):
                    os.unlink(transient)

        logger.info(f"Saved {target} ({format_file_size(len(content))})")
        return target

    @staticmethod
    def _with_extension(file_name: str, content_type: Optional[str]) -> str:
        if Path(file_name).suffix or not content_type:
            return file_name
        extension = mimetypes.guess_extension(content_type.split(";")[0].strip())
        return f"{file_name}{extension}" if extension else file_name

    def _claim_target(self, file_name: str) -> Path:
        """
        Reserve a free path, numbering duplicates like a browser: "a (1).pdf".

        The name is claimed by creating it exclusively, so a file that
        appears concurrently under the same name is never overwritten.
        """
        stem, suffix = Path(file_name).stem, Path(file_name).suffix
        target = self.download_dir / file_name
        counter = 1
        while True:
            try:
                os.close(os.open(target, os.O_CREAT | os.O_EXCL | os.O_WRONLY))
                return target
            except FileExistsError:
                target = self.download_dir / f"{stem} ({counter}){suffix}"
                counter += 1
