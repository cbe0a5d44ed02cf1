import bz2
import deflate
import zstandard

from .constants import STORE_THRESHOLD, DEFLATE_LEVEL
from .exceptions import *


def compression_for(size: int) -> int:
    """Pick compression method for a payload of ``size`` bytes. Tiny payloads are stored."""
    return 0 if size <= STORE_THRESHOLD else 8


def compress(method: int, data: bytes) -> bytes:
    """Compress ``data``. Returns compressed data."""

    if method == 0:
        return data
    elif method == 8:
        return deflate.deflate_compress(data, DEFLATE_LEVEL)
    raise UnsupportedMethod(f'Compression method {method} is not supported for writing.')


def decompress(method: int, uncompressed_size: int, data: bytes) -> bytes:
    """Decompress ``data``. Returns decompressed data."""

    if method == 0:
        return data
    elif method in range(1, 6):
        raise UnsupportedMethod('Shrinking and Reducing are not supported.')
    elif method == 6:
        raise Deprecated('Legacy Implode is no longer supported.')
    elif method == 7:
        raise Deprecated('Tokenizing is not used by PKZIP.')
    elif method in (11, 13, 15, 16, 17):
        raise ReservedValue(f'Compression method {method} is reserved.')

    try:
        if method == 8:
            if uncompressed_size == 0:
                return b''
            return deflate.deflate_decompress(data, uncompressed_size)
        elif method == 12:
            return bz2.decompress(data)
        elif method == 93:
            return zstandard.decompress(data, max_output_size=uncompressed_size)
    except (deflate.DeflateError, zstandard.ZstdError, OSError, ValueError) as e:
        raise BadFile(f'Could not decompress data: {e}') from e

    raise UnsupportedMethod(f'Compression method {method} is not supported.')
