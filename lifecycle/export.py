"""
Artifact export — the persisted model as one streamed zip archive.

Archive contents (always exactly these)::

    model/              ← directory entry
    model/<files>       ← engine artefact files
    info.json
    labels.json

Entries are written in sorted order with fixed timestamps and permissions,
so exporting the same artifact twice yields byte-identical archives.  The
archive is produced while it is consumed: files are read in chunks and
every compressed chunk is yielded as soon as it exists.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Iterator, List

from .storage import MODEL_DIR, ArtifactStore

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "fruitlab-model.zip"
CHUNK_SIZE = 64 * 1024
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644 << 16
DIR_MODE = (0o40755 << 16) | 0x10


class _ChunkSink:
    """Write-only, unseekable file object whose contents are drained."""

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def write(self, data: bytes) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _zip_info(name: str, mode: int) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
    info.external_attr = mode
    info.create_system = 3  # unix
    return info


class ArtifactExporter:
    """Streams the persisted artifact of a store as a zip archive."""

    filename = ARCHIVE_NAME

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store

    def export(self) -> Iterator[bytes]:
        """Return an iterator of archive chunks.

        The artifact's presence is checked here, before the first chunk,
        so callers get ``ArtifactNotFound`` up front rather than a broken
        stream.

        Raises
        ------
        ArtifactNotFound
            If no complete artifact is persisted.
        """
        entries = self.store.files()
        logger.info("Exporting %d files from %s", len(entries), self.store.root)
        return self._stream(entries)

    def _stream(self, entries) -> Iterator[bytes]:
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(_zip_info(f"{MODEL_DIR}/", DIR_MODE), b"")
            yield sink.drain()

            for name, path in entries:
                info = _zip_info(name, FILE_MODE)
                info.compress_type = zipfile.ZIP_DEFLATED
                with archive.open(info, mode="w") as dest, Path(path).open("rb") as src:
                    for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                        dest.write(chunk)
                        data = sink.drain()
                        if data:
                            yield data
                data = sink.drain()
                if data:
                    yield data
        yield sink.drain()

    def write_to(self, target: Path) -> Path:
        """Write the archive to *target* (used by the command line)."""
        chunks = self.export()
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as fh:
            for chunk in chunks:
                fh.write(chunk)
        return target
