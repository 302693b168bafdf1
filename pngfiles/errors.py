class PngFilesError(Exception):
    """Base class for pngfiles-specific errors."""


# Parsing
class FormatError(PngFilesError):
    pass


class IntegrityError(PngFilesError):
    pass


class OutOfBoundsError(PngFilesError):
    pass


# File records
class EncodingError(PngFilesError):
    pass


class CompressionError(PngFilesError):
    pass


# Mutation
class DuplicateKeyError(PngFilesError):
    pass


class SizeLimitError(PngFilesError):
    pass


class KeyNotFoundError(PngFilesError):
    pass
