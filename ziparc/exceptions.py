class ZiparcException(Exception):
    """Base class for all ziparc exceptions."""

class WrongPath(ZiparcException):
    """Path doesn't satisfy the precondition of the requested operation."""

class DuplicateEntry(WrongPath):
    """Entry with the same path is already in the archive."""

class NotAnArchive(ZiparcException):
    """Memory buffer doesn't start with the zip signature."""

class WrongMode(ZiparcException):
    """Operation is not allowed in the current archive mode."""

class NoInputData(ZiparcException):
    """Nothing was given to add."""

class NotFound(ZiparcException):
    """Requested entry doesn't exist."""

class IoFailure(ZiparcException):
    """Underlying filesystem or codec operation failed."""

class BadFile(IoFailure):
    """Archive or one of its entries is damaged."""

class ReservedValue(BadFile):
    """Reserved value found while processing file."""

class Deprecated(BadFile):
    """Unsupported proccess found."""

class UnsupportedMethod(BadFile):
    """Entry uses a compression or encryption method that can't be unpacked."""
