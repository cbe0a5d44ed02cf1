"""Insertion of single items and whole folder trees into an archive opened for writing.

Every function gets the codec and the entry index explicitly. A path is inserted into the
index only after the codec has added it, so index values stay equal to codec indexes.
"""
import logging
from datetime import datetime
from os import PathLike
from os import path as os_path
from typing import Optional

from ._base_classes import Codec
from ._entry_index import EntryIndex
from ._fstools import list_recursive, last_modified, relative_path
from ._pathtools import to_folder_path, join_path
from .exceptions import ZiparcException

logger = logging.getLogger(__name__)


def _log(verbose: bool, level: int, msg: str, *args) -> None:
    logger.log(level if verbose else logging.DEBUG, msg, *args)


def insert_file(
        codec: Codec,
        entries: EntryIndex,
        source: str | PathLike[str],
        entry_path: str
) -> bool:
    """Add file ``source`` as ``entry_path``. Returns False if the entry already exists."""

    if entry_path in entries:
        return False
    codec.add_file(entry_path, source)
    entries.insert(entry_path)
    return True


def insert_folder(
        codec: Codec,
        entries: EntryIndex,
        entry_path: str,
        last_mod_time: Optional[datetime] = None
) -> bool:
    """Add empty folder entry. '/' is appended to ``entry_path`` if missing."""

    entry_path = to_folder_path(entry_path)
    if entry_path in entries:
        return False
    codec.add_bytes(entry_path, b'', last_mod_time)
    entries.insert(entry_path)
    return True


def insert_bytes(
        codec: Codec,
        entries: EntryIndex,
        entry_path: str,
        data: bytes,
        last_mod_time: Optional[datetime] = None
) -> bool:
    if entry_path in entries:
        return False
    codec.add_bytes(entry_path, data, last_mod_time)
    entries.insert(entry_path)
    return True


def insert_tree(
        codec: Codec,
        entries: EntryIndex,
        source: str | PathLike[str],
        entry_root: str,
        /,
        exclude: Optional[str] = None,
        verbose: bool = False
) -> int:
    """Add folder ``source`` with all its contents under ``entry_root``.

    Folder entry for ``entry_root`` itself is created first. Items and subfolders that
    can't be read are logged and skipped, existing entries are left untouched. ``exclude`` is an
    absolute path that is never added (the archive being written).

    Returns number of newly added entries. Raises IoFailure if ``source`` can't be listed.
    """

    def skip_folder(path, error: ZiparcException) -> None:
        _log(verbose, logging.WARNING, "Skipped contents of '%s': %s", path, error)

    items = list_recursive(source, on_error=skip_folder)

    added = 0
    root_entry = to_folder_path(entry_root)

    try:
        if insert_folder(codec, entries, root_entry, last_modified(source)):
            added += 1
            _log(verbose, logging.INFO, 'Adding: %s', root_entry)
    except ZiparcException as e:
        _log(verbose, logging.WARNING, "Failed to add folder '%s': %s", root_entry, e)

    for path, is_dir in items:
        if exclude is not None and os_path.abspath(path) == exclude:
            continue

        entry_path = join_path(root_entry, relative_path(source, path))
        try:
            if is_dir:
                is_new = insert_folder(codec, entries, entry_path, last_modified(path))
            else:
                is_new = insert_file(codec, entries, path, entry_path)
        except ZiparcException as e:
            _log(verbose, logging.WARNING, "Failed to add '%s': %s", entry_path, e)
            continue

        if is_new:
            added += 1
            _log(verbose, logging.INFO, 'Adding: %s', entry_path)
        else:
            _log(verbose, logging.INFO, 'Skipped existing entry: %s', entry_path)

    return added
