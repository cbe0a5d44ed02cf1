"""Reading and writing zip archives: listing entries, extracting them to disk or memory
and adding files, folders and buffered data."""

from ._codec import ZipCodec, is_archive, is_zip_file
from ._dataclasses import BufferedFile, EntryStat
from ._entry_index import EntryIndex
from ._pathtools import is_folder_path, is_file_path, to_folder_path, join_path
from .archive import ZipArchive
from .constants import AUTO, READ, WRITE, UNSET, READING, WRITING, ZIP_SUFFIX, STORE_THRESHOLD
from .exceptions import *

__all__ = [
    'ZipArchive',
    'ZipCodec',
    'BufferedFile',
    'EntryStat',
    'EntryIndex',
    'is_archive',
    'is_zip_file',
    'is_folder_path',
    'is_file_path',
    'to_folder_path',
    'join_path',
    'AUTO',
    'READ',
    'WRITE',
    'UNSET',
    'READING',
    'WRITING',
    'ZIP_SUFFIX',
    'STORE_THRESHOLD',
    'ZiparcException',
    'WrongPath',
    'DuplicateEntry',
    'NotAnArchive',
    'WrongMode',
    'NoInputData',
    'NotFound',
    'IoFailure',
    'BadFile',
    'ReservedValue',
    'Deprecated',
    'UnsupportedMethod',
]
