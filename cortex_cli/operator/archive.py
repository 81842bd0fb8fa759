"""In-memory zip archives for configuration bundles."""

import io
import os
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field

from cortex_cli.operator.errors import ArchiveError


@dataclass
class ZipBytesInput:
    content: bytes
    dest: str


@dataclass
class ZipFileInput:
    source: str
    dest: str


@dataclass
class ZipDirInput:
    source: str
    dest: str = ""  # prefix inside the archive
    # Paths (relative to source) for which any predicate returns True are skipped
    ignore_fns: list[Callable[[str], bool]] = field(default_factory=list)
    include_hidden: bool = False


@dataclass
class ZipInput:
    bytes: list[ZipBytesInput] = field(default_factory=list)
    files: list[ZipFileInput] = field(default_factory=list)
    dirs: list[ZipDirInput] = field(default_factory=list)
    empty_files: list[str] = field(default_factory=list)


def _is_hidden(rel_path: str) -> bool:
    return any(part.startswith(".") for part in rel_path.split(os.sep))


def _dir_entries(dir_input: ZipDirInput) -> list[ZipFileInput]:
    entries = []
    for root, dirs, files in os.walk(dir_input.source):
        dirs.sort()
        for name in sorted(files):
            path = os.path.join(root, name)
            rel_path = os.path.relpath(path, dir_input.source)
            if not dir_input.include_hidden and _is_hidden(rel_path):
                continue
            if any(ignore(rel_path) for ignore in dir_input.ignore_fns):
                continue
            dest = os.path.join(dir_input.dest, rel_path).replace(os.sep, "/")
            entries.append(ZipFileInput(source=path, dest=dest))
    return entries


def zip_to_mem(zip_input: ZipInput) -> bytes:
    """Serialize a ZipInput into a deflate-compressed archive held in memory."""
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for entry in zip_input.bytes:
                archive.writestr(entry.dest, entry.content)

            file_entries = list(zip_input.files)
            for dir_input in zip_input.dirs:
                file_entries.extend(_dir_entries(dir_input))
            for entry in file_entries:
                archive.write(entry.source, arcname=entry.dest)

            for dest in zip_input.empty_files:
                archive.writestr(dest, b"")
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ArchiveError() from e

    return buffer.getvalue()
