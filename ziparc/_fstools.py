"""Filesystem helpers used to walk source folders and to prepare extraction targets."""
import os
from datetime import datetime
from os import PathLike
from os import path as os_path
from pathlib import Path
from typing import Callable, Optional

from .exceptions import IoFailure


def parent_folder(path: str | PathLike[str]) -> str:
    """Absolute path of the folder containing ``path``."""
    return os_path.dirname(os_path.abspath(path))


def last_modified(path: str | PathLike[str]) -> datetime:
    try:
        return datetime.fromtimestamp(os_path.getmtime(path))
    except OSError as e:
        raise IoFailure(f'Could not stat {os.fspath(path)!r}: {e}') from e


def relative_path(base: str | PathLike[str], target: str | PathLike[str]) -> str:
    """Path of ``target`` relative to ``base`` with '/' separators."""
    return Path(os_path.relpath(target, base)).as_posix()


def make_dirs(path: str | PathLike[str]) -> None:
    """Create folder ``path`` with all missing parents. Existing folder is fine."""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise IoFailure(f'Could not create folder {os.fspath(path)!r}: {e}') from e


def list_recursive(
        root: str | PathLike[str],
        on_error: Optional[Callable[[Path, IoFailure], None]] = None
) -> list[tuple[Path, bool]]:
    """List everything inside ``root`` as (path, is_dir) pairs.

    Hidden files are included, symlinks are skipped. Parent folders always come before their contents,
    otherwise order is the one given by the filesystem.

    Raises IoFailure if ``root`` can't be listed. A subfolder that can't be listed is passed to
    ``on_error`` and its contents are skipped. Without ``on_error`` the failure is raised.
    """

    items: list[tuple[Path, bool]] = []

    def walk(current: Path) -> None:
        try:
            children = list(current.iterdir())
        except OSError as e:
            raise IoFailure(f'Could not list {str(current)!r}: {e}') from e

        for child in children:
            if child.is_symlink():
                continue
            if child.is_dir():
                items.append((child, True))
                try:
                    walk(child)
                except IoFailure as e:
                    if on_error is None:
                        raise
                    on_error(child, e)
            elif child.is_file():
                items.append((child, False))

    walk(Path(root))
    return items
