"""Helpers for archive entry paths. Folders inside zip are entries whose name ends with '/'."""

SEP: str = '/'


def is_folder_path(path: str) -> bool:
    """True if ``path`` names a folder entry."""
    return path != '' and path[-1] == SEP


def is_file_path(path: str) -> bool:
    """True if ``path`` names a file entry."""
    return path != '' and path[-1] != SEP


def to_folder_path(path: str) -> str:
    """Append '/' if ``path`` doesn't end with it."""
    return path if is_folder_path(path) else path + SEP


def _is_sep(char: str) -> bool:
    return char in ('/', '\\')


def join_path(base: str, rel: str) -> str:
    """Join ``base`` and ``rel`` with exactly one separator between them.

    If both sides already have a separator at the seam, one of them is dropped.
    If only one side has it, the parts are simply concatenated.
    ``.`` and ``..`` segments are left as they are.
    """

    if base == '':
        return rel
    if rel == '':
        return base

    base_ends = _is_sep(base[-1])
    rel_starts = _is_sep(rel[0])

    if base_ends and rel_starts:
        return base[:-1] + rel
    if base_ends or rel_starts:
        return base + rel
    return base + SEP + rel


def base_name(path: str) -> str:
    """Last segment of an entry path. Folder paths keep no trailing separator."""
    return path.rstrip(SEP).rsplit(SEP, 1)[-1]
