import logging
import os
from collections.abc import Iterable, Mapping
from datetime import datetime
from os import PathLike
from os import path as os_path
from types import TracebackType
from typing import Optional, Self

from ._base_classes import Codec
from ._codec import ZipCodec, is_archive, is_zip_file
from ._dataclasses import BufferedFile, EntryStat
from ._entry_index import EntryIndex, NOT_FOUND
from ._fstools import make_dirs, parent_folder
from ._ingest import insert_file, insert_folder, insert_bytes, insert_tree
from ._pathtools import is_folder_path, is_file_path, join_path
from .constants import *
from .exceptions import *

logger = logging.getLogger(__name__)


def default_zip_path(sources: list[str]) -> str:
    """Archive path used by ``ZipArchive.compress`` for absolute paths ``sources`` sharing one folder.

    A single item gives ``<folder>/<item>.zip``, several items give ``<folder>/<folder name>.zip``.
    """

    root = os_path.dirname(sources[0])
    name = os_path.basename(sources[0]) if len(sources) == 1 else os_path.basename(root)
    return os_path.join(root, (name or DEFAULT_ARCHIVE_NAME) + ZIP_SUFFIX)


class ZipArchive:
    """Session over a single zip archive opened either for reading or for writing.

    ``source`` is a path to the archive or a bytes object holding an archive in memory.
    ``mode`` decides how a path is opened:
        * 'Auto' - create a new archive if ``path`` doesn't exist, read it if it's a zip file.
        * 'Read' - read only existing zip file.
        * 'Write' - always create a new archive, existing file is overwritten.

    Operations never raise on archive or filesystem errors. They return False, -1, None or an
    empty list instead; the exception that caused the failure is kept in ``error``.
    When ``verbose`` is True, progress and failures are logged at INFO and WARNING levels.

    Closing the session (explicitly, by leaving ``with`` block or when the object is collected)
    writes central directory of an archive opened for writing.
    """

    def __init__(
            self,
            source: str | PathLike[str] | bytes | None = None,
            mode: ModeHints = AUTO,
            /,
            *,
            output_folder: str | PathLike[str] | None = None,
            verbose: bool = False,
            encoding: str = 'utf-8'
    ):
        self._codec: Optional[Codec] = None
        self._mode: SessionModes = UNSET
        self._archive_path: Optional[str] = None
        self._output_folder: str = ''
        self._entries: EntryIndex = EntryIndex()
        self._encoding: str = encoding
        self.verbose: bool = verbose
        self.error: Optional[ZiparcException] = None

        if isinstance(source, (bytes, bytearray, memoryview)):
            self.set_buffer(source)
        elif source is not None:
            self.set_archive(source, mode)

        if output_folder is not None:
            self.output_folder = output_folder

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __del__(self):
        if getattr(self, '_codec', None) is not None:
            self.close()

    def __repr__(self) -> str:
        return f'<{type(self).__name__} mode={self._mode!r} path={self._archive_path!r} entries={len(self._entries)}>'

    @property
    def mode(self) -> SessionModes:
        return self._mode

    @property
    def is_open(self) -> bool:
        return self._codec is not None

    @property
    def archive_path(self) -> Optional[str]:
        """Path of the open archive. None for in-memory archives and closed sessions."""
        return self._archive_path

    @property
    def output_folder(self) -> str:
        """Folder entries are extracted to. Defaults to the folder containing the archive."""
        return self._output_folder

    @output_folder.setter
    def output_folder(self, value: str | PathLike[str]) -> None:
        self._output_folder = os.fspath(value)

    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def entries(self) -> dict[str, int]:
        """Copy of the entry path to index mapping."""
        return self._entries.as_dict()

    @property
    def count(self) -> int:
        return self._codec.count if self._codec is not None else 0

    def _log(self, level: int, msg: str, *args) -> None:
        logger.log(level if self.verbose else logging.DEBUG, msg, *args)

    def _fail(self, error: ZiparcException) -> None:
        self.error = error
        self._log(logging.WARNING, '%s: %s', type(error).__name__, error)

    def _require(self, mode: SessionModes) -> None:
        if self._mode != mode:
            raise WrongMode(f"Archive must be in '{mode}' mode, current mode is '{self._mode}'.")

    # Opening and closing

    def set_archive(self, path: str | PathLike[str], mode: ModeHints = AUTO, /) -> bool:
        """Open archive ``path``, closing the previous one. See class docstring for ``mode`` values.

        If ``path`` doesn't fit the requested mode, currently open archive is left untouched.
        Otherwise it is closed first, and the session stays Unset if ``path`` then fails to open.
        """

        path = os.fspath(path)
        try:
            if mode == AUTO:
                if not os_path.exists(path):
                    codec_mode = 'w'
                elif is_zip_file(path):
                    codec_mode = 'r'
                else:
                    raise WrongPath(f"'{path}' is not a zip file.")
            elif mode == READ:
                if not is_zip_file(path):
                    raise WrongPath(f"'{path}' is not an existing zip file.")
                codec_mode = 'r'
            elif mode == WRITE:
                codec_mode = 'w'
            else:
                raise ValueError(f"Expected mode to be 'Auto', 'Read' or 'Write', got {mode!r} instead.")

            self.close()
            codec = ZipCodec.open(path, codec_mode, self._encoding)
        except ZiparcException as e:
            self._fail(e)
            return False

        self._attach(codec, os_path.abspath(path))
        return True

    def set_buffer(self, data: bytes, /) -> bool:
        """Open in-memory archive ``data`` for reading. Output folder is kept as it was."""

        try:
            if not is_archive(data):
                raise NotAnArchive('Buffer should be in .ZIP format.')
            self.close()
            codec = ZipCodec.open_memory(data, self._encoding)
        except ZiparcException as e:
            self._fail(e)
            return False

        self._attach(codec, None)
        return True

    def _attach(self, codec: Codec, path: Optional[str]) -> None:
        self._codec = codec
        self._archive_path = path
        if codec.mode == 'r':
            self._mode = READING
            self._entries.rebuild(codec)
            if path is not None:
                self._output_folder = parent_folder(path)
            self._log(logging.INFO, 'Opened %s for reading, %d entries.', path or 'buffer', len(self._entries))
        else:
            self._mode = WRITING
            self._entries.clear()
            self._log(logging.INFO, 'Opened %s for writing.', path)

    def close(self) -> bool:
        """Close the archive. Archive opened for writing is finalized first.
        Returns False if finalizing or closing failed, handle is released anyway.
        """

        codec = self._codec
        if codec is None:
            return True

        self._codec = None
        self._mode = UNSET
        self._archive_path = None
        self._entries.clear()

        ok = True
        try:
            if codec.mode == 'w':
                codec.finalize()
                self._log(logging.INFO, 'Done')
        except ZiparcException as e:
            self._fail(e)
            ok = False

        try:
            codec.close()
        except ZiparcException as e:
            self._fail(e)
            ok = False
        return ok

    # Writing

    def add_path(self, source: str | PathLike[str], entry_path: Optional[str] = None, /) -> bool:
        """Add file or folder ``source`` from disk as ``entry_path``.

        If ``entry_path`` is not specified, base name of ``source`` is used.
        Folders are added with all their contents (hidden files included, symlinks skipped);
        the call succeeds if at least one new entry was added. Existing entries are never replaced.
        """

        try:
            self._require(WRITING)
            source = os_path.normpath(os.fspath(source))
            if entry_path is None:
                entry_path = os_path.basename(source)
            entry_path = entry_path.replace('\\', '/')
            if entry_path == '':
                raise WrongPath('Entry path is empty.')

            if os_path.abspath(source) == self._archive_path:
                raise WrongPath(f"Can't add archive '{source}' into itself.")

            if os_path.isfile(source):
                if not insert_file(self._codec, self._entries, source, entry_path):
                    raise DuplicateEntry(f"Entry '{entry_path}' already exists.")
                self._log(logging.INFO, 'Adding: %s', entry_path)
            elif os_path.isdir(source):
                added = insert_tree(
                    self._codec, self._entries, source, entry_path,
                    exclude=self._archive_path, verbose=self.verbose
                )
                if added == 0:
                    raise DuplicateEntry(f"Nothing new was added from '{source}'.")
            else:
                raise WrongPath(f"'{source}' doesn't exist.")
        except ZiparcException as e:
            self._fail(e)
            return False
        return True

    def add_buffer(self, file: BufferedFile, /) -> bool:
        """Add memory resident file. Name ending with '/' creates a folder entry."""

        try:
            self._require(WRITING)
            self._insert_buffer(file)
        except ZiparcException as e:
            self._fail(e)
            return False
        return True

    def add_buffer_list(self, files: Mapping[str, Optional[bytes]] | Iterable[BufferedFile], /) -> bool:
        """Add several memory resident files in the given order.

        ``files`` is a mapping of entry paths to data or an iterable of BufferedFile.
        Stops at the first file that couldn't be added, files added before it stay in the archive.
        """

        try:
            self._require(WRITING)
            if isinstance(files, Mapping):
                buffered = [BufferedFile(name, data) for name, data in files.items()]
            else:
                buffered = list(files)
            if not buffered:
                raise NoInputData('Nothing to add.')

            for file in buffered:
                self._insert_buffer(file)
        except ZiparcException as e:
            self._fail(e)
            return False
        return True

    def _insert_buffer(self, file: BufferedFile) -> None:
        if not isinstance(file, BufferedFile):
            raise TypeError(f"Expected BufferedFile, got '{type(file).__name__}' instead.")

        name = file.name.replace('\\', '/')
        if name == '':
            raise WrongPath('Entry path is empty.')

        if is_folder_path(name):
            if file.data:
                raise WrongPath(f"Folder entry '{name}' can't hold data.")
            is_new = insert_folder(self._codec, self._entries, name, file.last_mod_time)
        else:
            is_new = insert_bytes(self._codec, self._entries, name, file.data or b'', file.last_mod_time)

        if not is_new:
            raise DuplicateEntry(f"Entry '{name}' already exists.")
        self._log(logging.INFO, 'Adding: %s', name)

    # Reading

    def _stat(self, index: int) -> EntryStat:
        stat = self._codec.stat(index)
        if not stat.is_valid:
            raise NotFound(f'Entry index {index} is out of range.')
        return stat

    def _find(self, name: str) -> int:
        index = self._entries.find(name)
        if index == NOT_FOUND:
            raise NotFound(f"Entry '{name}' not found.")
        return index

    def _target(self, folder: str, entry_path: str) -> str:
        """Disk path of ``entry_path`` inside ``folder``. Entries leading outside of it are rejected."""

        if folder == '':
            raise WrongPath('Output folder is not set.')
        target = join_path(folder, entry_path)
        root = os_path.abspath(folder)
        if os_path.commonpath([root, os_path.abspath(target)]) != root:
            raise WrongPath(f"Entry '{entry_path}' points outside of the output folder.")
        return target

    def _extract_entry(self, stat: EntryStat, target: str) -> None:
        if stat.is_dir:
            make_dirs(target)
        else:
            make_dirs(parent_folder(target))
            self._codec.extract_to_file(stat.index, target)

    def _to_buffer(self, stat: EntryStat, name: str) -> BufferedFile:
        if stat.is_dir:
            return BufferedFile(name, None, stat.last_mod_time)
        return BufferedFile(name, self._codec.extract_to_bytes(stat.index), stat.last_mod_time)

    def _folder_contents(self, folder: EntryStat) -> list[tuple[str, int]]:
        if not folder.is_dir:
            raise WrongPath(f"Entry '{folder.path}' is not a folder.")
        return [
            (path[len(folder.path):], index) for path, index in self._entries.items()
            if path.startswith(folder.path) and path != folder.path
        ]

    def extract_all(self) -> bool:
        """Extract every entry to the output folder keeping full paths.

        Stops at the first entry that couldn't be extracted. Entries extracted before it are left on disk.
        """

        try:
            self._require(READING)
            total = self._codec.count
            if total == 0:
                raise NotFound('Archive is empty.')

            for i in range(total):
                stat = self._stat(i)
                self._log(logging.INFO, 'Extracting %d/%d: %s', i + 1, total, stat.path)
                self._extract_entry(stat, self._target(self._output_folder, stat.path))
        except ZiparcException as e:
            self._fail(e)
            return False

        self._log(logging.INFO, 'Unzip complete.')
        return True

    def extract_index(self, index: int, output_path: str | PathLike[str] | None = None, /) -> bool:
        """Extract entry ``index`` to ``output_path``.

        If ``output_path`` is not specified, entry is extracted into the output folder keeping its path.
        Folder entries only create the folder.
        """

        try:
            self._require(READING)
            stat = self._stat(index)
            if output_path is None:
                target = self._target(self._output_folder, stat.path)
            else:
                target = os.fspath(output_path)
            self._log(logging.INFO, 'Extracting: %s', stat.path)
            self._extract_entry(stat, target)
        except ZiparcException as e:
            self._fail(e)
            return False
        return True

    def extract_file(self, name: str, output_path: str | PathLike[str] | None = None, /) -> bool:
        """Same as ``extract_index`` but the entry is looked up with ``find_index``."""

        index = self.find_index(name)
        if index == NOT_FOUND:
            return False
        return self.extract_index(index, output_path)

    def extract_folder(self, index: int, output_path: str | PathLike[str] | None = None, /) -> bool:
        """Extract contents of folder entry ``index`` directly into ``output_path``.

        Folder's own path is stripped: with ``root/sub/`` extracted to ``out``,
        ``root/sub/b.txt`` lands as ``out/b.txt``. Defaults to the output folder.
        """

        try:
            self._require(READING)
            folder = self._stat(index)
            out = self._output_folder if output_path is None else os.fspath(output_path)
            contents = self._folder_contents(folder)
            if out == '':
                raise WrongPath('Output folder is not set.')

            make_dirs(out)
            for rel_path, i in contents:
                self._log(logging.INFO, 'Extracting: %s', folder.path + rel_path)
                self._extract_entry(self._stat(i), self._target(out, rel_path))
        except ZiparcException as e:
            self._fail(e)
            return False
        return True

    def extract_to_buffer(self, index: int, /) -> Optional[BufferedFile]:
        """Extract entry ``index`` into memory. Folders are returned with ``data`` set to None."""

        try:
            self._require(READING)
            stat = self._stat(index)
            return self._to_buffer(stat, stat.path)
        except ZiparcException as e:
            self._fail(e)
            return None

    def extract_all_to_buffer(self) -> list[BufferedFile]:
        """Extract every entry into memory. Returns an empty list if any entry fails."""

        try:
            self._require(READING)
            if self._codec.count == 0:
                raise NotFound('Archive is empty.')
            files = []
            for i in range(self._codec.count):
                stat = self._stat(i)
                files.append(self._to_buffer(stat, stat.path))
            return files
        except ZiparcException as e:
            self._fail(e)
            return []

    def extract_folder_to_buffer(self, index: int, /) -> list[BufferedFile]:
        """Extract contents of folder entry ``index`` into memory, names are relative to the folder."""

        try:
            self._require(READING)
            contents = self._folder_contents(self._stat(index))
            return [self._to_buffer(self._stat(i), rel_path) for rel_path, i in contents]
        except ZiparcException as e:
            self._fail(e)
            return []

    # Entry information

    def find_index(self, name: str, /) -> int:
        """Find index of entry ``name``.

        If there's no exact match and ``name`` has no '/', the first file with this file name
        is returned even if several files share it. Returns -1 if nothing is found.
        """

        try:
            return self._find(name)
        except ZiparcException as e:
            self._fail(e)
            return NOT_FOUND

    def stat(self, index: int, /) -> EntryStat:
        """Information about entry ``index``. Path is empty if the entry doesn't exist."""
        if self._codec is None:
            return EntryStat()
        return self._codec.stat(index)

    def name(self, index: int, /) -> str:
        return self.stat(index).path

    def is_folder(self, index: int, /) -> bool:
        return is_folder_path(self.name(index))

    def is_file(self, index: int, /) -> bool:
        return is_file_path(self.name(index))

    def size_compressed(self, index: int, /) -> int:
        return self.stat(index).compressed_size

    def size_uncompressed(self, index: int, /) -> int:
        return self.stat(index).uncompressed_size

    def last_modified(self, index: int, /) -> Optional[datetime]:
        return self.stat(index).last_mod_time

    def contents(self) -> list[str]:
        """Paths of all entries in index order."""
        return list(self._entries)

    # One-shot helpers

    @staticmethod
    def extract(
            zip_path: str | PathLike[str],
            output_folder: str | PathLike[str] | None = None,
            /,
            *,
            verbose: bool = False
    ) -> bool:
        """Extract archive ``zip_path`` into ``output_folder``, by default next to the archive."""

        with ZipArchive(verbose=verbose) as z:
            if not z.set_archive(zip_path, READ):
                return False
            if output_folder is not None:
                z.output_folder = output_folder
            return z.extract_all()

    @staticmethod
    def compress(
            source: str | PathLike[str] | Iterable[str | PathLike[str]] | BufferedFile
                    | Mapping[str, Optional[bytes]] | Iterable[BufferedFile],
            zip_path: str | PathLike[str] | None = None,
            /,
            *,
            verbose: bool = False
    ) -> bool:
        """Create archive ``zip_path`` from ``source``.

        ``source`` is one of:
            * a path to a file or folder. Default archive is ``<source>.zip`` next to it.
            * a list of paths. All of them must be in the same folder, default archive is
              ``<folder>/<folder name>.zip``. Missing items and symlinks are skipped.
            * a BufferedFile, a list of them or a mapping of entry paths to data.
              ``zip_path`` is required.

        Existing ``zip_path`` is overwritten.
        """

        with ZipArchive(verbose=verbose) as z:
            return z._compress(source, zip_path)

    def _compress(self, source, zip_path: str | PathLike[str] | None) -> bool:
        if isinstance(source, BufferedFile):
            return self._compress_buffers([source], zip_path)
        if isinstance(source, Mapping):
            return self._compress_buffers(source, zip_path)
        if isinstance(source, (str, PathLike)):
            return self._compress_paths([source], zip_path)
        if not isinstance(source, Iterable) or isinstance(source, (bytes, bytearray)):
            raise TypeError(f"Expected path, list of paths or buffered files, got '{type(source).__name__}' instead.")

        items = list(source)
        if items and all(isinstance(item, BufferedFile) for item in items):
            return self._compress_buffers(items, zip_path)
        if all(isinstance(item, (str, PathLike)) for item in items):
            return self._compress_paths(items, zip_path)
        raise TypeError('Expected list of paths or list of buffered files, not a mix of them.')

    def _compress_buffers(self, files, zip_path: str | PathLike[str] | None) -> bool:
        try:
            if zip_path is None:
                raise WrongPath('Archive path must be specified for buffered data.')
            if not files:
                raise NoInputData('Nothing to add.')
        except ZiparcException as e:
            self._fail(e)
            return False

        if not self.set_archive(zip_path, WRITE):
            return False
        added = self.add_buffer_list(files)
        return self.close() and added

    def _compress_paths(self, paths: list[str | PathLike[str]], zip_path: str | PathLike[str] | None) -> bool:
        try:
            if not paths:
                raise NoInputData('Nothing to compress.')

            sources = [os_path.abspath(os.fspath(p)) for p in paths]
            root = os_path.dirname(sources[0])
            if any(os_path.dirname(s) != root for s in sources):
                raise WrongPath('All items must be in the same folder.')

            if zip_path is None:
                zip_path = default_zip_path(sources)

            existing = []
            for s in sources:
                if os_path.islink(s) or not os_path.exists(s):
                    self._log(logging.WARNING, 'Skipped: %s', s)
                    continue
                existing.append(s)
            if not existing:
                raise WrongPath('None of the given paths exist.')
        except ZiparcException as e:
            self._fail(e)
            return False

        self._log(logging.INFO, 'Zipping %d items into %s', len(existing), os.fspath(zip_path))
        if not self.set_archive(zip_path, WRITE):
            return False

        added = 0
        for s in existing:
            if self.add_path(s, os_path.basename(s)):
                added += 1
        return self.close() and added > 0
