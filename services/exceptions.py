"""
Exceptions raised by the compression and analysis services
"""


class CompressionError(Exception):
    """Base class for every terminal compression failure.

    ``last_size`` is the best or last known encoded size in bytes, or None when
    no buffer was produced before the failure.
    """

    def __init__(self, message, last_size=None):
        super().__init__(message)
        self.last_size = last_size


class InvalidTarget(CompressionError):
    pass


class DecodeError(CompressionError):
    pass


class EncodeError(CompressionError):
    pass


class TargetUnreachable(CompressionError):
    def __init__(self, target_bytes, last_size=None):
        if last_size is None:
            message = (
                f"Could not compress the image to {target_bytes / 1024:.2f} KB. "
                "Try a larger target size."
            )
        else:
            message = (
                f"Could not reach {target_bytes / 1024:.2f} KB; smallest achieved was "
                f"{last_size / 1024:.2f} KB. Try raising the target."
            )
        super().__init__(message, last_size=last_size)
        self.target_bytes = target_bytes


class CompressionCancelled(CompressionError):
    pass


class AnalysisUnavailable(Exception):
    def __init__(self, message="The AI service is currently unavailable. Please try again later."):
        super().__init__(message)
