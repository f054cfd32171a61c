"""
Error Types
===========

Exceptions raised by the transform core and its collaborators.

Hierarchy:
    TransformError
        ProbeError          - source dimensions could not be determined
        DimensionError      - a transform's width/height precondition is unmet
        CodecError
            ImageDecodeError
                FrameDecodeError - frame asset undecodable or zero-sized
            ImageEncodeError
    SourceError             - network/source collaborator failure
        SourceNotFoundError

None of these are retried inside the core.
"""


class TransformError(Exception):
    """Base class for failures inside the transform core."""
    pass


class ProbeError(TransformError):
    """Raised when the stream ends or is malformed before dimensions are known."""
    pass


class DimensionError(TransformError):
    """Raised when a transform cannot obtain the source width and height."""
    pass


class CodecError(TransformError):
    """Raised when OpenCV fails to decode or encode pixels."""
    pass


class ImageDecodeError(CodecError):
    """Raised when image bytes cannot be decoded into pixels."""
    pass


class FrameDecodeError(ImageDecodeError):
    """Raised when a frame asset is undecodable or has a zero dimension."""
    pass


class ImageEncodeError(CodecError):
    """Raised when pixels cannot be encoded to the requested format."""
    pass


class SourceError(Exception):
    """Raised when a source or frame asset cannot be fetched or read."""
    pass


class SourceNotFoundError(SourceError):
    """Raised when the upstream answers 404."""
    pass
