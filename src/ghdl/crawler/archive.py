"""Packing cloned repositories into a single ``.tar.gz``."""

import gzip
import logging
import os
import tarfile
from pathlib import Path
from typing import Iterator, List

from ghdl.config import DEFAULT_COMPRESSION, MAX_COMPRESSION, MIN_COMPRESSION
from ghdl.messages import MessageSink

logger = logging.getLogger(__name__)


def resolve_compression_level(level: int, sink: MessageSink) -> int:
    """Return ``level`` if gzip accepts it, else warn and use the default."""
    if isinstance(level, int) and MIN_COMPRESSION <= level <= MAX_COMPRESSION:
        return level
    sink.warning(f"gzip level {level!r} invalid, using default")
    return DEFAULT_COMPRESSION


def owner_directories(working_root: Path) -> List[Path]:
    """Owner directories that hold at least one clone, sorted by name."""
    owners = []
    for entry in sorted(working_root.iterdir(), key=lambda p: p.name):
        if not entry.is_dir() or entry.is_symlink():
            continue
        if not any(entry.iterdir()):
            logger.debug("skipping %s: nothing cloned", entry.name)
            continue
        owners.append(entry)
    return owners


def walk_tree(top: Path) -> Iterator[Path]:
    """Yield ``top`` and everything below it, parents before children.

    Symlinks are yielded but never followed.
    """
    yield top
    for dirpath, dirnames, filenames in os.walk(top, onerror=_raise):
        dirnames.sort()
        base = Path(dirpath)
        for name in dirnames + sorted(filenames):
            yield base / name


def _raise(error: OSError) -> None:
    raise error


def archive_name(path: Path, working_root: Path) -> str:
    """Member name: relative to the working root, forward slashes."""
    return path.relative_to(working_root).as_posix()


class Archiver:
    """Writes the working root's owner directories to one gzip'd tarball."""

    def __init__(self, working_root: Path, sink: MessageSink, compression_level: int = DEFAULT_COMPRESSION):
        self.working_root = working_root
        self.sink = sink
        self.compression_level = resolve_compression_level(compression_level, sink)

    def write(self, output_path: Path) -> int:
        """Create ``output_path``. Returns the number of members written.

        Either the whole archive is written or the file is removed and the
        error re-raised.
        """
        count = 0
        try:
            with open(output_path, "wb") as raw:
                with gzip.GzipFile(
                    filename="", mode="wb", fileobj=raw, compresslevel=self.compression_level
                ) as compressed:
                    with tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as tar:
                        for owner_dir in owner_directories(self.working_root):
                            count += self._insert(tar, owner_dir)
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise
        return count

    def _insert(self, tar: tarfile.TarFile, owner_dir: Path) -> int:
        count = 0
        for path in walk_tree(owner_dir):
            tar.add(path, arcname=archive_name(path, self.working_root), recursive=False)
            count += 1
        return count
