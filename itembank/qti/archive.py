"""Zip archive I/O for QTI packages.

Everything happens in memory; callers decide where the bytes go.
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Mapping

from itembank.errors import ArchiveIoError

logger = logging.getLogger(__name__)


def write_archive(documents: Mapping[str, str | bytes]) -> bytes:
    """Pack `documents` (archive path -> content) into a deflated zip."""
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path, content in documents.items():
                data = content.encode("utf-8") if isinstance(content, str) else content
                zf.writestr(path, data)
    except (OSError, zipfile.LargeZipFile) as e:
        raise ArchiveIoError(f"Failed to write archive: {e}") from e

    data = buffer.getvalue()
    logger.debug(f"Packed {len(documents)} documents into {len(data) / 1024:.2f}KB archive")
    return data


def read_archive(data: bytes) -> dict[str, bytes]:
    """Unpack every file entry of a zip archive (directories are skipped)."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return {info.filename: zf.read(info) for info in zf.infolist() if not info.is_dir()}
    except zipfile.BadZipFile as e:
        raise ArchiveIoError(f"Not a valid zip archive: {e}") from e
    except (OSError, RuntimeError, EOFError) as e:
        raise ArchiveIoError(f"Failed to read archive: {e}") from e
