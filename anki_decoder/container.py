"""
Read the outer ZIP container of an .apkg / .colpkg file.

The container is the only component that touches raw archive bytes. Its
directory is parsed once when opened; every later read reuses it.
"""

import io
import logging
import threading
import zipfile
import zlib

from anki_decoder.errors import ContainerError, EntryNotFound, NotAContainer
from anki_decoder.models import ArchiveEntry

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
# End-of-central-directory record; this is all an empty archive contains.
ZIP_EMPTY_MAGIC = b"PK\x05\x06"


class ContainerReader:
    """
    Random access to the members of an in-memory ZIP archive.

    Use as a context manager so the archive is closed when the decode ends::

        with ContainerReader.open(data) as reader:
            names = reader.names()
            collection = reader.read("collection.anki21b")
    """

    def __init__(self, zip_file: zipfile.ZipFile) -> None:
        self._zip = zip_file
        self._infos = {info.filename: info for info in zip_file.infolist()}
        self._lock = threading.Lock()

    @classmethod
    def open(cls, data: bytes) -> "ContainerReader":
        """
        Parse the archive directory.

        :param data: Complete archive contents.
        :returns: A reader over the archive.
        :raises NotAContainer: If the bytes are not a readable ZIP archive.
        """
        if not (data.startswith(ZIP_MAGIC) or data.startswith(ZIP_EMPTY_MAGIC)):
            raise NotAContainer(
                f"Not a ZIP archive (leading bytes {data[:4].hex(' ') or 'empty'})"
            )
        try:
            zip_file = zipfile.ZipFile(io.BytesIO(data), "r")
        except (zipfile.BadZipFile, EOFError) as exc:
            raise NotAContainer(f"Corrupt ZIP archive: {exc}") from exc

        reader = cls(zip_file)
        logger.debug("Opened archive with %d entries", len(reader._infos))
        return reader

    def __enter__(self) -> "ContainerReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def list_entries(self) -> list[ArchiveEntry]:
        """List archive members in directory order."""
        return [
            ArchiveEntry(
                name=info.filename,
                is_directory=info.is_dir(),
                size=info.file_size,
                compressed_size=info.compress_size,
            )
            for info in self._infos.values()
        ]

    def names(self) -> list[str]:
        return list(self._infos)

    def has_entry(self, name: str) -> bool:
        return name in self._infos

    def read(self, name: str) -> bytes:
        """
        Read and inflate one archive member.

        Safe to call from several threads at once.

        :param name: Member name.
        :returns: Member contents (still possibly Zstandard-compressed).
        :raises EntryNotFound: If no member has this name.
        :raises ContainerError: If the member cannot be inflated.
        """
        info = self._infos.get(name)
        if info is None:
            raise EntryNotFound(name)
        try:
            with self._lock:
                return self._zip.read(info)
        except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
            raise ContainerError(f"Cannot read archive entry {name!r}: {exc}") from exc
        except (NotImplementedError, RuntimeError) as exc:
            # Unsupported compression method or an encrypted member
            raise ContainerError(f"Unsupported archive entry {name!r}: {exc}") from exc
